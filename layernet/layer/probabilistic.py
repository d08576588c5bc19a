from collections import OrderedDict

import numpy

from layernet.activation import (
    calculate_activations_derivatives,
    calculate_activations_second_derivatives,
)
from layernet.core.config import validate_counts
from layernet.core.exception import ConfigurationError, StructuralError
from layernet.layer.layer_base import (
    glorot_uniform, Layer, LayerType, new_weights)
from layernet.layer.propagation import BackPropagation, ForwardPropagation


LOGISTIC = 'Logistic'
SOFTMAX = 'Softmax'
COMPETITIVE = 'Competitive'
PROBABILISTIC_ACTIVATION_FUNCTIONS = (LOGISTIC, SOFTMAX, COMPETITIVE)


def softmax(combinations):
    """ Row-wise softmax of a 2d array, or softmax of a 1d array """
    if combinations.shape[-1] == 0:
        return numpy.zeros_like(combinations)
    shifted = combinations - combinations.max(axis=-1, keepdims=True)
    exponentials = numpy.exp(shifted)
    return exponentials / exponentials.sum(axis=-1, keepdims=True)


def softmax_jacobian(activations):
    """ The Jacobian of a softmax with the given (1d) activations """
    return numpy.diag(activations) - numpy.outer(activations, activations)


def competitive(combinations):
    """ One-hot encoding of the row-wise argmax """
    outputs = numpy.zeros_like(combinations)
    if combinations.shape[-1] == 0:
        return outputs
    winners = numpy.argmax(combinations, axis=-1)
    numpy.put_along_axis(
        outputs, numpy.expand_dims(winners, -1), 1.0, axis=-1)
    return outputs


class ProbabilisticLayer(Layer):
    """ The output layer for classification. It has the same parameters as
    a perceptron layer but its activations are probabilities (logistic,
    softmax) or a one-hot winner (competitive).
    """
    layer_type = LayerType.Probabilistic

    def __init__(self, inputs_number=0, neurons_number=0,
                 activation_function=SOFTMAX, random_state=None):
        inputs_number, neurons_number = validate_counts(
            inputs_number, neurons_number)

        self.random_state = (numpy.random.RandomState()
                             if random_state is None else random_state)

        self.set_activation_function(activation_function)

        self.biases = numpy.zeros(neurons_number)
        self.synaptic_weights = glorot_uniform(
            self.random_state, (neurons_number, inputs_number),
            fan_in=inputs_number, fan_out=neurons_number)

    def get_inputs_number(self):
        return self.synaptic_weights.shape[1]

    def get_neurons_number(self):
        return self.synaptic_weights.shape[0]

    def set_activation_function(self, activation_function):
        if activation_function not in PROBABILISTIC_ACTIVATION_FUNCTIONS:
            msg = "Unknown probabilistic activation function: {}"
            raise ConfigurationError(msg.format(activation_function))
        self.activation_function = activation_function

    def parameter_groups(self):
        return OrderedDict([
            ('biases', self.biases),
            ('synaptic_weights', self.synaptic_weights),
        ])

    ###########################################################
    # Propagation

    def calculate_combinations(self, inputs):
        return numpy.dot(inputs, self.synaptic_weights.T) + self.biases

    def calculate_activations(self, combinations):
        if self.activation_function == LOGISTIC:
            return calculate_activations_derivatives(
                combinations, LOGISTIC)[0]
        elif self.activation_function == SOFTMAX:
            return softmax(combinations)
        return competitive(combinations)

    def calculate_activations_jacobian(self, combinations):
        """ Jacobian of the activations w.r.t. the combinations for one
        sample
        """
        neurons_number = combinations.shape[0]

        if self.activation_function == LOGISTIC:
            _, derivatives = calculate_activations_derivatives(
                combinations, LOGISTIC)
            return numpy.diag(derivatives)
        elif self.activation_function == SOFTMAX:
            return softmax_jacobian(softmax(combinations))

        return numpy.zeros((neurons_number, neurons_number))

    def calculate_activations_second_derivatives(self, combinations):
        """ Second derivatives of the activations w.r.t. the combinations
        for one sample. Elementwise (neurons,) for the logistic; the full
        (neurons, neurons, neurons) tensor for the softmax and competitive.
        """
        neurons_number = combinations.shape[0]

        if self.activation_function == LOGISTIC:
            _, _, second = calculate_activations_second_derivatives(
                combinations, LOGISTIC)
            return second

        elif self.activation_function == SOFTMAX:
            s = softmax(combinations)
            identity = numpy.eye(neurons_number)

            # second[k, i, j] = d^2 s_k / dc_i dc_j
            kronecker = identity - s[None, :]
            return (
                s[:, None, None] *
                (kronecker[:, :, None] * kronecker[:, None, :] -
                 (s[:, None] * identity - s[:, None] * s[None, :])[None])
            )

        return numpy.zeros((neurons_number,) * 3)

    def forward_propagate(self, inputs):
        inputs = self._validate_inputs(inputs)

        combinations = self.calculate_combinations(inputs)

        if self.activation_function == LOGISTIC:
            activations, derivatives = calculate_activations_derivatives(
                combinations, LOGISTIC)
        elif self.activation_function == SOFTMAX:
            activations = softmax(combinations)
            derivatives = numpy.array([
                softmax_jacobian(row) for row in activations
            ]).reshape(activations.shape + activations.shape[-1:])
        else:
            activations = competitive(combinations)
            derivatives = numpy.zeros_like(combinations)

        return ForwardPropagation(
            inputs=inputs,
            combinations=combinations,
            activations=activations,
            activations_derivatives=derivatives,
            outputs=activations)

    def calculate_error_gradient(self, forward_propagation, delta):
        delta = self._validate_delta(forward_propagation, delta)

        if self.activation_function == SOFTMAX:
            activations = forward_propagation.activations
            weighted = (delta * activations).sum(axis=1, keepdims=True)
            combinations_delta = activations * (delta - weighted)
        else:
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
        return numpy.dot(self.calculate_activations_jacobian(combinations),
                         self.synaptic_weights)

    def calculate_hessian_form(self, input_vector):
        input_vector = self._validate_input_vector(input_vector)
        combinations = self.calculate_combinations(input_vector)
        weights = self.synaptic_weights
        second = self.calculate_activations_second_derivatives(combinations)

        if self.activation_function == LOGISTIC:
            return (second[:, None, None] *
                    weights[:, :, None] * weights[:, None, :])

        return numpy.einsum('kab,ai,bj->kij', second, weights, weights)

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
