from collections import OrderedDict

import numpy

from layernet.activation import (
    calculate_activations,
    calculate_activations_derivatives,
    calculate_activations_second_derivatives,
    get_activation_function,
)
from layernet.core.config import PerceptronConfig, validate_perceptron_config
from layernet.core.exception import ConfigurationError, StructuralError
from layernet.layer.layer_base import (
    glorot_uniform, Layer, LayerType, new_weights)
from layernet.layer.propagation import BackPropagation, ForwardPropagation


class PerceptronLayer(Layer):
    """ A layer of perceptrons.

    For a batch of inputs `x` (one sample per row) the computation is::

        combinations = dot(x, synaptic_weights.T) + biases
        outputs = activation(combinations)

    where `synaptic_weights[j, i]` is the weight from input i to neuron j.
    """
    layer_type = LayerType.Perceptron

    def __init__(self, inputs_number=0, neurons_number=0,
                 activation_function='HyperbolicTangent', random_state=None):
        """
        Parameters
        ----------
        inputs_number: int
            Number of inputs.

        neurons_number: int
            Number of perceptrons.

        activation_function: ActivationFunction or str
            The activation function identifier.

        random_state: numpy.random.RandomState, default=None
            Provide a RandomState object for reproducible results.
        """
        config = validate_perceptron_config(PerceptronConfig(
            inputs_number=inputs_number,
            neurons_number=neurons_number,
            activation_function=activation_function))

        self.random_state = (numpy.random.RandomState()
                             if random_state is None else random_state)

        self.activation_function = config.activation_function

        self.biases = numpy.zeros(config.neurons_number)
        self.synaptic_weights = numpy.zeros(
            (config.neurons_number, config.inputs_number))

        self.set_synaptic_weights_glorot()

    @classmethod
    def from_config(cls, config, random_state=None):
        config = validate_perceptron_config(config)
        return cls(inputs_number=config.inputs_number,
                   neurons_number=config.neurons_number,
                   activation_function=config.activation_function,
                   random_state=random_state)

    def get_inputs_number(self):
        return self.synaptic_weights.shape[1]

    def get_neurons_number(self):
        return self.synaptic_weights.shape[0]

    def set_activation_function(self, activation_function):
        self.activation_function = get_activation_function(
            activation_function)

    def parameter_groups(self):
        return OrderedDict([
            ('biases', self.biases),
            ('synaptic_weights', self.synaptic_weights),
        ])

    def set_biases(self, biases):
        biases = numpy.asarray(biases, dtype=float)
        if biases.shape != self.biases.shape:
            msg = "biases shape {} should be {}"
            raise ConfigurationError(msg.format(
                biases.shape, self.biases.shape))
        self.biases = biases.copy()

    def set_synaptic_weights(self, synaptic_weights):
        synaptic_weights = numpy.asarray(synaptic_weights, dtype=float)
        if synaptic_weights.shape != self.synaptic_weights.shape:
            msg = "synaptic_weights shape {} should be {}"
            raise ConfigurationError(msg.format(
                synaptic_weights.shape, self.synaptic_weights.shape))
        self.synaptic_weights = synaptic_weights.copy()

    def initialize_biases(self, value):
        self.biases.fill(value)

    def initialize_synaptic_weights(self, value):
        self.synaptic_weights.fill(value)

    def set_parameters_random(self, minimum=-1.0, maximum=1.0):
        self.biases[:] = self.random_state.uniform(
            minimum, maximum, size=self.biases.shape)
        self.synaptic_weights[:] = self.random_state.uniform(
            minimum, maximum, size=self.synaptic_weights.shape)

    def set_synaptic_weights_glorot(self):
        neurons_number, inputs_number = self.synaptic_weights.shape
        self.synaptic_weights[:] = glorot_uniform(
            self.random_state, self.synaptic_weights.shape,
            fan_in=inputs_number, fan_out=neurons_number)

    ###########################################################
    # Propagation

    def calculate_combinations(self, inputs):
        """ Combinations for a batch (2d) or a single input vector (1d) """
        return numpy.dot(inputs, self.synaptic_weights.T) + self.biases

    def calculate_activations(self, combinations):
        return calculate_activations(combinations, self.activation_function)

    def calculate_activations_jacobian(self, combinations):
        """ The derivative of the activations with respect to the
        combinations of a single sample, as a square matrix
        """
        _, derivatives = calculate_activations_derivatives(
            combinations, self.activation_function)
        return numpy.diag(derivatives)

    def calculate_activations_second_derivatives(self, combinations):
        return calculate_activations_second_derivatives(
            combinations, self.activation_function)[2]

    def forward_propagate(self, inputs):
        inputs = self._validate_inputs(inputs)

        combinations = self.calculate_combinations(inputs)
        activations, derivatives = calculate_activations_derivatives(
            combinations, self.activation_function)

        return ForwardPropagation(
            inputs=inputs,
            combinations=combinations,
            activations=activations,
            activations_derivatives=derivatives,
            outputs=activations)

    def calculate_error_gradient(self, forward_propagation, delta):
        delta = self._validate_delta(forward_propagation, delta)

        combinations_delta = (
            delta * forward_propagation.activations_derivatives)

        gradients = OrderedDict([
            ('biases', combinations_delta.sum(axis=0)),
            ('synaptic_weights', numpy.dot(combinations_delta.T,
                                           forward_propagation.inputs)),
        ])

        return BackPropagation(
            delta=delta,
            combinations_delta=combinations_delta,
            gradients=gradients,
            input_delta=None)

    def calculate_jacobian(self, input_vector):
        input_vector = self._validate_input_vector(input_vector)
        combinations = self.calculate_combinations(input_vector)
        _, derivatives = calculate_activations_derivatives(
            combinations, self.activation_function)
        return derivatives[:, None] * self.synaptic_weights

    def calculate_hessian_form(self, input_vector):
        input_vector = self._validate_input_vector(input_vector)
        combinations = self.calculate_combinations(input_vector)
        second_derivatives = self.calculate_activations_second_derivatives(
            combinations)

        # hessian[k] = f''(c_k) * outer(w_k, w_k)
        weights = self.synaptic_weights
        return (second_derivatives[:, None, None] *
                weights[:, :, None] * weights[:, None, :])

    ###########################################################
    # Structure

    def insert_input(self, random_state=None):
        neurons_number, inputs_number = self.synaptic_weights.shape
        column = new_weights(random_state, (neurons_number, 1),
                             fan_in=inputs_number+1, fan_out=neurons_number)
        self.synaptic_weights = numpy.hstack([self.synaptic_weights, column])

    def delete_input(self, index):
        if not 0 <= index < self.get_inputs_number():
            msg = "Input index {} out of range for {} inputs"
            raise StructuralError(msg.format(index, self.get_inputs_number()))
        self.synaptic_weights = numpy.delete(
            self.synaptic_weights, index, axis=1)

    def insert_neuron(self, random_state=None):
        neurons_number, inputs_number = self.synaptic_weights.shape
        row = new_weights(random_state, (1, inputs_number),
                          fan_in=inputs_number, fan_out=neurons_number+1)
        self.synaptic_weights = numpy.vstack([self.synaptic_weights, row])
        self.biases = numpy.append(self.biases, 0.0)

    def delete_neuron(self, index):
        if not 0 <= index < self.get_neurons_number():
            msg = "Neuron index {} out of range for {} neurons"
            raise StructuralError(
                msg.format(index, self.get_neurons_number()))
        self.synaptic_weights = numpy.delete(
            self.synaptic_weights, index, axis=0)
        self.biases = numpy.delete(self.biases, index)
