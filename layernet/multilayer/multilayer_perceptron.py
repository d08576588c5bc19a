"""
Composition of heterogeneous layers into a feed-forward network.

Layer i consumes the outputs of layer i-1. All parameters are exposed as
one flat vector: layer after layer, in the order of each layer's own
`parameter_groups`. The position of each layer's block is given by an
offset table, so that reading a block never depends on another layer's
internals.
"""
import logging

import numpy

from layernet.activation import get_activation_function
from layernet.core.exception import ConfigurationError, StructuralError
from layernet.layer.layer_base import Layer, LayerType
from layernet.layer.perceptron import PerceptronLayer
from layernet.layer.propagation import (
    MultilayerBackPropagation, MultilayerForwardPropagation)


_logger_name = __name__.rsplit('.', 1)[-1]
logger = logging.getLogger(_logger_name)

# Layers computing `dot(inputs, synaptic_weights.T) + biases`
COMBINATION_LAYER_TYPES = (LayerType.Perceptron, LayerType.Probabilistic)

PASSTHROUGH_LAYER_TYPES = (LayerType.Scaling, LayerType.Unscaling)


class MultilayerPerceptron(object):
    """ An ordered sequence of layers, each feeding the next.

    Any combination of perceptron, probabilistic, long short-term memory,
    scaling and unscaling layers is accepted as long as the width of each
    layer's inputs agrees with the number of neurons of the preceding
    layer. A long short-term memory layer inside the network is used in
    its final state mode, i.e., it passes its last hidden state on.
    """

    def __init__(self, layers=None, random_state=None):
        """
        Parameters
        ----------
        layers: list of Layer, default=None
            The layers, from the inputs to the outputs.

        random_state: numpy.random.RandomState, default=None
            Used by the parameter randomization methods. Provide a
            RandomState object for reproducible results.
        """
        self.random_state = (numpy.random.RandomState()
                             if random_state is None else random_state)

        self.set_layers([] if layers is None else layers)

    @classmethod
    def from_architecture(cls, architecture, activation_functions=None,
                          random_state=None):
        """ Build a network of perceptron layers

        Parameters
        ----------
        architecture: list of int
            The number of inputs followed by the size of each layer.

        activation_functions: list, default=None
            One activation function per layer. The default is the
            hyperbolic tangent for hidden layers and linear for the
            output layer.

        random_state: numpy.random.RandomState, default=None
            Used for the Glorot initialization of the weights.
        """
        architecture = list(architecture)

        if len(architecture) < 2:
            msg = ("An architecture needs the inputs number and at least "
                   "one layer size, got {}")
            raise ConfigurationError(msg.format(architecture))

        layers_number = len(architecture) - 1

        if activation_functions is None:
            activation_functions = (
                ['HyperbolicTangent'] * (layers_number-1) + ['Linear'])
        elif len(activation_functions) != layers_number:
            msg = "Got {} activation functions for {} layers"
            raise ConfigurationError(
                msg.format(len(activation_functions), layers_number))

        random_state = (numpy.random.RandomState()
                        if random_state is None else random_state)

        layers = [
            PerceptronLayer(inputs_number=architecture[i],
                            neurons_number=architecture[i+1],
                            activation_function=activation_functions[i],
                            random_state=random_state)
            for i in range(layers_number)
        ]

        return cls(layers=layers, random_state=random_state)

    def set_layers(self, layers):
        layers = list(layers)

        for i, layer in enumerate(layers):
            if not isinstance(layer, Layer):
                msg = "Layer {} ({}) is not a Layer"
                raise ConfigurationError(msg.format(i, type(layer)))

            if i > 0 and (layer.get_input_width() !=
                          layers[i-1].get_neurons_number()):
                msg = ("Layer {} takes {} inputs but layer {} has {} "
                       "neurons")
                raise ConfigurationError(msg.format(
                    i, layer.get_input_width(),
                    i-1, layers[i-1].get_neurons_number()))

        self.layers = layers

    ###########################################################
    # Architecture

    def get_layers(self):
        return list(self.layers)

    def get_layer(self, layer_index):
        self._check_layer_index(layer_index)
        return self.layers[layer_index]

    def get_layers_number(self):
        return len(self.layers)

    def get_inputs_number(self):
        if not self.layers:
            return 0
        return self.layers[0].get_input_width()

    def get_outputs_number(self):
        if not self.layers:
            return 0
        return self.layers[-1].get_neurons_number()

    def get_layers_inputs_number(self):
        return [layer.get_inputs_number() for layer in self.layers]

    def get_layers_neurons_numbers(self):
        return [layer.get_neurons_number() for layer in self.layers]

    def get_architecture(self):
        """ Returns [inputs_number, layer_1_size, ..., layer_n_size], or
        an empty list for a network without layers
        """
        if not self.layers:
            return []
        return [self.get_inputs_number()] + self.get_layers_neurons_numbers()

    def get_complexity(self):
        """ The sizes of the hidden layers """
        return self.get_layers_neurons_numbers()[:-1]

    def get_layers_activation_function(self):
        """ The activation function of each layer; None for layers without
        one (scaling and unscaling)
        """
        return [getattr(layer, 'activation_function', None)
                for layer in self.layers]

    def set_layer_activation_function(self, layer_index,
                                      activation_function):
        layer = self.get_layer(layer_index)

        if layer.layer_type == LayerType.Perceptron:
            activation_function = get_activation_function(
                activation_function)
        elif layer.layer_type not in (LayerType.Probabilistic,
                                      LayerType.LongShortTermMemory):
            msg = "Layer {} ({}) has no activation function"
            raise ConfigurationError(
                msg.format(layer_index, layer.layer_type.name))

        layer.set_activation_function(activation_function)

    def is_empty(self):
        return not self.layers

    def _check_layer_index(self, layer_index):
        if not 0 <= layer_index < len(self.layers):
            msg = "Layer index {} out of range for {} layers"
            raise ConfigurationError(
                msg.format(layer_index, len(self.layers)))

    ###########################################################
    # Parameters

    def get_layers_parameters_numbers(self):
        return numpy.array(
            [layer.get_parameters_number() for layer in self.layers],
            dtype=int)

    def get_layers_cumulative_parameters_numbers(self):
        """ Offset table. Entry i is the end of layer i's block, and the
        start of layer i+1's block, in the flat parameter vector.
        """
        return numpy.cumsum(self.get_layers_parameters_numbers())

    def get_layer_parameters_slice(self, layer_index):
        self._check_layer_index(layer_index)
        cumulative = self.get_layers_cumulative_parameters_numbers()
        start = 0 if layer_index == 0 else int(cumulative[layer_index-1])
        return slice(start, int(cumulative[layer_index]))

    def get_parameters_number(self):
        return int(self.get_layers_parameters_numbers().sum())

    def get_parameters(self):
        if not self.layers:
            return numpy.zeros(0)
        return numpy.hstack([layer.get_parameters() for layer in self.layers])

    def set_parameters(self, parameters):
        parameters = numpy.asarray(parameters, dtype=float)
        parameters_number = self.get_parameters_number()

        if parameters.shape != (parameters_number,):
            msg = "Parameters have shape {} but should be ({},)"
            raise ConfigurationError(
                msg.format(parameters.shape, parameters_number))

        cumulative = self.get_layers_cumulative_parameters_numbers()

        for i, layer in enumerate(self.layers):
            start = 0 if i == 0 else int(cumulative[i-1])
            layer.set_parameters(parameters, index=start)

    def get_layers_parameters(self):
        return [layer.get_parameters() for layer in self.layers]

    def set_layer_parameters(self, layer_index, parameters):
        layer = self.get_layer(layer_index)
        parameters = numpy.asarray(parameters, dtype=float)

        if parameters.shape != (layer.get_parameters_number(),):
            msg = "Layer {} parameters have shape {} but should be ({},)"
            raise ConfigurationError(msg.format(
                layer_index, parameters.shape,
                layer.get_parameters_number()))

        layer.set_parameters(parameters)

    def set_layers_parameters(self, layers_parameters):
        if len(layers_parameters) != len(self.layers):
            msg = "Got parameters for {} layers but there are {}"
            raise ConfigurationError(
                msg.format(len(layers_parameters), len(self.layers)))

        # Validate every block before writing any
        for i, parameters in enumerate(layers_parameters):
            expected = (self.layers[i].get_parameters_number(),)
            if numpy.shape(parameters) != expected:
                msg = "Layer {} parameters have shape {} but should be {}"
                raise ConfigurationError(
                    msg.format(i, numpy.shape(parameters), expected))

        for layer, parameters in zip(self.layers, layers_parameters):
            layer.set_parameters(parameters)

    def _get_group_index(self, layer_index, group_name):
        """ Position in the flat vector of the first element of a
        parameter group of a layer
        """
        layer = self.get_layer(layer_index)
        index = self.get_layer_parameters_slice(layer_index).start

        for name, group in layer.parameter_groups().items():
            if name == group_name:
                return index, group
            index += group.size

        msg = "Layer {} ({}) has no parameter group {}"
        raise ConfigurationError(
            msg.format(layer_index, layer.layer_type.name, group_name))

    def get_layer_bias_index(self, layer_index, neuron_index, gate=None):
        """ Position of a neuron's bias in the flat parameter vector. For a
        long short-term memory layer, `gate` selects the bias vector.
        """
        group_name = 'biases' if gate is None else gate + '_biases'
        index, group = self._get_group_index(layer_index, group_name)

        if not 0 <= neuron_index < group.shape[0]:
            msg = "Neuron index {} out of range for {} neurons"
            raise ConfigurationError(msg.format(neuron_index, group.shape[0]))

        return index + neuron_index

    def get_layer_synaptic_weight_index(self, layer_index, neuron_index,
                                        input_index, gate=None):
        """ Position of the weight from `input_index` to `neuron_index` in
        the flat parameter vector. For a long short-term memory layer,
        `gate` selects the weight matrix.
        """
        group_name = ('synaptic_weights' if gate is None
                      else gate + '_weights')
        index, group = self._get_group_index(layer_index, group_name)
        neurons_number, inputs_number = group.shape

        if not (0 <= neuron_index < neurons_number and
                0 <= input_index < inputs_number):
            msg = "Weight ({}, {}) out of range for shape {}"
            raise ConfigurationError(
                msg.format(neuron_index, input_index, group.shape))

        return index + neuron_index * inputs_number + input_index

    def get_parameters_indices(self):
        """ Returns an integer array with one row per parameter of the flat
        vector: the layer index, the neuron index, and the input index (-1
        for a bias). For recurrent weights the input index is the neuron
        of the previous hidden state.
        """
        rows = []

        for layer_index, layer in enumerate(self.layers):
            for group in layer.parameter_groups().values():
                if group.ndim == 1:
                    neurons = numpy.arange(group.shape[0])
                    inputs = numpy.full(group.shape[0], -1)
                else:
                    neurons, inputs = numpy.indices(group.shape)
                    neurons = neurons.ravel()
                    inputs = inputs.ravel()

                rows.append(numpy.column_stack([
                    numpy.full(neurons.shape[0], layer_index),
                    neurons, inputs]))

        if not rows:
            return numpy.zeros((0, 3), dtype=int)

        return numpy.vstack(rows).astype(int)

    def initialize_parameters(self, value):
        for layer in self.layers:
            layer.set_parameters_constant(value)

    def randomize_parameters_uniform(self, minimum=-1.0, maximum=1.0):
        self.set_parameters(self.random_state.uniform(
            minimum, maximum, size=self.get_parameters_number()))

    def randomize_parameters_normal(self, mean=0.0, standard_deviation=1.0):
        self.set_parameters(self.random_state.normal(
            mean, standard_deviation, size=self.get_parameters_number()))

    def perturbate_parameters(self, perturbation):
        """ Add uniform noise in [-perturbation, perturbation] to every
        parameter
        """
        noise = self.random_state.uniform(
            -perturbation, perturbation, size=self.get_parameters_number())
        self.set_parameters(self.get_parameters() + noise)

    def calculate_parameters_norm(self):
        return numpy.linalg.norm(self.get_parameters())

    ###########################################################
    # Forward and back propagation

    def forward_propagate(self, inputs):
        """
        Parameters
        ----------
        inputs: ndarray, shape=(batch, inputs_number)
            One sample per row.

        Returns
        -------
        forward_propagation: MultilayerForwardPropagation
            The inputs, the record of every layer and the network outputs.
        """
        records = []
        outputs = numpy.asarray(inputs, dtype=float)

        for layer in self.layers:
            record = layer.forward_propagate(outputs)
            records.append(record)
            outputs = record.outputs

        return MultilayerForwardPropagation(
            inputs=inputs, layers=records, outputs=outputs)

    def calculate_outputs(self, inputs):
        return self.forward_propagate(inputs).outputs

    def _calculate_hidden_delta(self, layer, back_propagation):
        """ The derivative of the error w.r.t. the inputs of `layer`, i.e.,
        the delta of the layer before it
        """
        layer_type = layer.layer_type

        if layer_type in COMBINATION_LAYER_TYPES:
            return numpy.dot(back_propagation.combinations_delta,
                             layer.synaptic_weights)
        elif layer_type == LayerType.LongShortTermMemory:
            return back_propagation.input_delta
        elif layer_type in PASSTHROUGH_LAYER_TYPES:
            return back_propagation.combinations_delta

        msg = "Unknown layer type {}"
        raise ConfigurationError(msg.format(layer_type))

    def calculate_error_gradient(self, forward_propagation, output_delta):
        """ Back propagate `output_delta`, the derivative of the error with
        respect to the network outputs.

        Returns
        -------
        back_propagation: MultilayerBackPropagation
            The record of every layer and the flat error gradient, in
            parameter order.
        """
        if len(forward_propagation.layers) != len(self.layers):
            msg = "The forward record has {} layers but there are {}"
            raise ConfigurationError(msg.format(
                len(forward_propagation.layers), len(self.layers)))

        records = [None] * len(self.layers)
        delta = output_delta

        for i in reversed(range(len(self.layers))):
            layer = self.layers[i]
            records[i] = layer.calculate_error_gradient(
                forward_propagation.layers[i], delta)

            if i > 0:
                delta = self._calculate_hidden_delta(layer, records[i])

        gradient = numpy.zeros(self.get_parameters_number())
        cumulative = self.get_layers_cumulative_parameters_numbers()

        for i, (layer, record) in enumerate(zip(self.layers, records)):
            start = 0 if i == 0 else int(cumulative[i-1])
            layer.insert_gradient(record, start, gradient)

        return MultilayerBackPropagation(layers=records, gradient=gradient)

    ###########################################################
    # Combination propagation

    def _check_combination_layer(self, layer_index):
        layer = self.get_layer(layer_index)

        if layer.layer_type not in COMBINATION_LAYER_TYPES:
            msg = ("Layer {} ({}) has no synaptic combinations; only "
                   "perceptron and probabilistic layers do")
            raise ConfigurationError(
                msg.format(layer_index, layer.layer_type.name))

        return layer

    def calculate_layer_combination_combination(self, layer_index,
                                                previous_combination):
        """ The combinations of layer `layer_index` as a function of the
        combinations of the layer before it
        """
        if layer_index < 1:
            msg = "Layer index must be at least 1, got {}"
            raise ConfigurationError(msg.format(layer_index))

        previous_layer = self._check_combination_layer(layer_index-1)
        layer = self._check_combination_layer(layer_index)

        previous_activation = previous_layer.calculate_activations(
            numpy.asarray(previous_combination, dtype=float))

        return layer.calculate_combinations(previous_activation)

    def calculate_layer_combination_combination_jacobian(
            self, layer_index, previous_combination):
        """ Derivatives of the combinations of layer `layer_index` with
        respect to the combinations of the layer before it, shape
        (neurons, previous neurons)
        """
        if layer_index < 1:
            msg = "Layer index must be at least 1, got {}"
            raise ConfigurationError(msg.format(layer_index))

        previous_layer = self._check_combination_layer(layer_index-1)
        layer = self._check_combination_layer(layer_index)

        activations_jacobian = previous_layer.calculate_activations_jacobian(
            numpy.asarray(previous_combination, dtype=float))

        return numpy.dot(layer.synaptic_weights, activations_jacobian)

    def calculate_interlayer_combination_combination(
            self, domain_index, image_index, domain_combination):
        """ The combinations of layer `image_index` as a function of the
        combinations of the earlier layer `domain_index`
        """
        if image_index < domain_index:
            msg = "Image layer {} comes before domain layer {}"
            raise ConfigurationError(msg.format(image_index, domain_index))

        self._check_combination_layer(domain_index)
        combination = numpy.asarray(domain_combination, dtype=float)

        for i in range(domain_index+1, image_index+1):
            combination = self.calculate_layer_combination_combination(
                i, combination)

        return combination

    def calculate_interlayer_combination_combination_jacobian(
            self, domain_index, image_index, domain_combination):
        """ Derivatives of the combinations of layer `image_index` with
        respect to the combinations of layer `domain_index`. The identity
        when both are the same layer and zero when the image layer comes
        first.
        """
        domain_layer = self._check_combination_layer(domain_index)
        image_layer = self._check_combination_layer(image_index)

        domain_neurons = domain_layer.get_neurons_number()

        if image_index < domain_index:
            return numpy.zeros(
                (image_layer.get_neurons_number(), domain_neurons))

        jacobian = numpy.eye(domain_neurons)
        combination = numpy.asarray(domain_combination, dtype=float)

        for i in range(domain_index+1, image_index+1):
            jacobian = numpy.dot(
                self.calculate_layer_combination_combination_jacobian(
                    i, combination),
                jacobian)
            combination = self.calculate_layer_combination_combination(
                i, combination)

        return jacobian

    def calculate_interlayers_combination_combination_jacobian(
            self, input_vector):
        """ The interlayer combination Jacobians for every pair of layers,
        evaluated at `input_vector`. Entry [i][j] holds the derivatives of
        the combinations of layer j w.r.t. those of layer i.
        """
        layers_combination = self.calculate_layers_combination(input_vector)
        layers_number = len(self.layers)

        return [
            [self.calculate_interlayer_combination_combination_jacobian(
                i, j, layers_combination[i])
             for j in range(layers_number)]
            for i in range(layers_number)
        ]

    ###########################################################
    # Per layer values for a single sample

    def _validate_input_vector(self, input_vector):
        input_vector = numpy.asarray(input_vector, dtype=float)

        if input_vector.shape != (self.get_inputs_number(),):
            msg = "Input vector has shape {} but should be ({},)"
            raise ConfigurationError(
                msg.format(input_vector.shape, self.get_inputs_number()))

        return input_vector

    def _forward_propagate_vector(self, input_vector):
        """ Layer records for a single sample. Recurrent layers start from
        their initial state and keep no state.
        """
        records = []
        outputs = self._validate_input_vector(input_vector)[None]

        for layer in self.layers:
            if layer.layer_type == LayerType.LongShortTermMemory:
                record = layer.forward_propagate(
                    outputs, state=layer.get_initial_state(1))
            else:
                record = layer.forward_propagate(outputs)
            records.append(record)
            outputs = record.outputs

        return records

    def _check_feedforward(self):
        for i, layer in enumerate(self.layers):
            if layer.layer_type == LayerType.LongShortTermMemory:
                msg = ("Layer {} is recurrent; its combinations are per "
                       "gate and per timestep")
                raise ConfigurationError(msg.format(i))

    def calculate_layers_combination(self, input_vector):
        self._check_feedforward()
        return [record.combinations[0]
                for record in self._forward_propagate_vector(input_vector)]

    def calculate_layers_activation(self, input_vector):
        """ The outputs of every layer for a single sample """
        return [record.outputs[0]
                for record in self._forward_propagate_vector(input_vector)]

    def calculate_layers_activation_derivative(self, input_vector):
        """ The activation derivatives of every layer for a single sample.
        A softmax layer gives its (neurons, neurons) Jacobian.
        """
        self._check_feedforward()
        return [record.activations_derivatives[0]
                for record in self._forward_propagate_vector(input_vector)]

    def calculate_layers_activation_second_derivative(self, input_vector):
        self._check_feedforward()
        records = self._forward_propagate_vector(input_vector)
        second_derivatives = []

        for layer, record in zip(self.layers, records):
            if layer.layer_type in COMBINATION_LAYER_TYPES:
                second_derivatives.append(
                    layer.calculate_activations_second_derivatives(
                        record.combinations[0]))
            else:
                second_derivatives.append(
                    layer.calculate_second_derivatives(record.inputs)[0])

        return second_derivatives

    ###########################################################
    # Jacobian and Hessian form

    def calculate_layers_jacobian(self, input_vector):
        """ The Jacobian of each layer's outputs with respect to its own
        inputs, evaluated along the forward pass of `input_vector`
        """
        records = self._forward_propagate_vector(input_vector)
        return [layer.calculate_jacobian(numpy.ravel(record.inputs[0]))
                for layer, record in zip(self.layers, records)]

    def calculate_jacobian(self, input_vector):
        """ Derivatives of the network outputs with respect to the network
        inputs, shape (outputs_number, inputs_number)
        """
        input_vector = self._validate_input_vector(input_vector)
        jacobian = numpy.eye(input_vector.shape[0])

        for layer_jacobian in self.calculate_layers_jacobian(input_vector):
            jacobian = numpy.dot(layer_jacobian, jacobian)

        return jacobian

    def calculate_hessian_form(self, input_vector):
        """ Second derivatives of each network output with respect to the
        network inputs, shape (outputs_number, inputs_number, inputs_number)

        With u the inputs of a layer g and y = g(u), the chain rule gives::

            H_y[k] = J_u^T G_k J_u + sum_j Jg[k, j] H_u[j]

        where Jg and G are the layer's own Jacobian and Hessian form.
        """
        input_vector = self._validate_input_vector(input_vector)
        inputs_number = input_vector.shape[0]

        jacobian = numpy.eye(inputs_number)
        hessian = numpy.zeros((inputs_number,) * 3)

        records = self._forward_propagate_vector(input_vector)

        for layer, record in zip(self.layers, records):
            layer_inputs = numpy.ravel(record.inputs[0])
            layer_jacobian = layer.calculate_jacobian(layer_inputs)
            layer_hessian = layer.calculate_hessian_form(layer_inputs)

            hessian = (
                numpy.einsum('ai,kab,bj->kij',
                             jacobian, layer_hessian, jacobian) +
                numpy.einsum('kj,jab->kab', layer_jacobian, hessian))
            jacobian = numpy.dot(layer_jacobian, jacobian)

        return hessian

    ###########################################################
    # Growing and pruning

    def _get_tied_layers(self, boundary):
        """ Layers whose width changes with the width at `boundary`, the
        connection between layer `boundary-1` and layer `boundary`.

        Pass-through layers have as many neurons as inputs so the change
        extends across them. Returns the producing layer index (or None
        at the network inputs), the pass-through layer indices, and the
        consuming layer index (or None at the network outputs).
        """
        layers_number = len(self.layers)

        first = boundary
        while first > 0 and self.layers[first-1].is_passthrough:
            first -= 1

        last = boundary
        while last < layers_number and self.layers[last].is_passthrough:
            last += 1

        producer = first - 1 if first > 0 else None
        consumer = last if last < layers_number else None

        return producer, list(range(first, last)), consumer

    def _get_boundary_width(self, producer, passthrough, consumer):
        """ Number of variables that can be indexed at a boundary. For a
        recurrent layer consuming the network inputs this is the number
        of features per timestep.
        """
        if consumer is not None:
            return self.layers[consumer].get_inputs_number()
        elif passthrough:
            return self.layers[passthrough[0]].get_inputs_number()
        return self.layers[producer].get_neurons_number()

    def _check_consumer(self, consumer):
        if consumer is None or consumer == 0:
            return

        layer = self.layers[consumer]

        if (layer.layer_type == LayerType.LongShortTermMemory and
                layer.timesteps > 1):
            msg = ("Cannot change the width feeding layer {}, a recurrent "
                   "layer with {} timesteps")
            raise StructuralError(msg.format(consumer, layer.timesteps))

    def _insert_variable(self, boundary, random_state=None):
        producer, passthrough, consumer = self._get_tied_layers(boundary)
        self._check_consumer(consumer)

        if producer is not None:
            self.layers[producer].insert_neuron(random_state=random_state)
        for i in passthrough:
            self.layers[i].insert_input(random_state=random_state)
        if consumer is not None:
            self.layers[consumer].insert_input(random_state=random_state)

    def _delete_variable(self, boundary, index):
        producer, passthrough, consumer = self._get_tied_layers(boundary)
        width = self._get_boundary_width(producer, passthrough, consumer)

        if not 0 <= index < width:
            msg = "Index {} out of range for {} variables"
            raise StructuralError(msg.format(index, width))

        if width == 1 and producer is None:
            msg = "Cannot remove the last input of the network"
            raise StructuralError(msg)

        if width == 1 and consumer is not None:
            msg = ("Cannot remove the last neuron of layer {}; it would "
                   "disconnect layer {}")
            raise StructuralError(msg.format(producer, consumer))

        self._check_consumer(consumer)

        if producer is not None:
            self.layers[producer].delete_neuron(index)
        for i in passthrough:
            self.layers[i].delete_input(index)
        if consumer is not None:
            self.layers[consumer].delete_input(index)

    def _check_not_empty(self):
        if not self.layers:
            raise StructuralError("The network has no layers")

    def _check_structural_layer_index(self, layer_index):
        if not 0 <= layer_index < len(self.layers):
            msg = "Cannot resize layer {}; the network has {} layers"
            raise StructuralError(msg.format(layer_index, len(self.layers)))

    def grow_input(self, random_state=None):
        """ Add one input to the network. New weights are zero unless a
        random state is given, in which case they are Glorot uniform.
        """
        self._check_not_empty()
        self._insert_variable(0, random_state=random_state)
        logger.info("Added an input; architecture is {}".format(
            self.get_architecture()))

    def prune_input(self, index):
        self._check_not_empty()
        self._delete_variable(0, index)
        logger.info("Removed input {}; architecture is {}".format(
            index, self.get_architecture()))

    def prune_output(self, index):
        self._check_not_empty()
        self._delete_variable(len(self.layers), index)
        logger.info("Removed output {}; architecture is {}".format(
            index, self.get_architecture()))

    def grow_layer_neuron(self, layer_index, count=1, random_state=None):
        """ Add `count` neurons to a layer, and the matching inputs to the
        layers that consume them.

        Parameters
        ----------
        layer_index: int
            The layer to grow.

        count: int, default=1
            The number of neurons to add.

        random_state: numpy.random.RandomState, default=None
            If given, new weights are Glorot uniform; otherwise zero.
        """
        self._check_structural_layer_index(layer_index)

        if count < 1:
            msg = "count ({}) must be at least 1"
            raise StructuralError(msg.format(count))

        _, _, consumer = self._get_tied_layers(layer_index+1)
        self._check_consumer(consumer)

        for _ in range(count):
            self._insert_variable(layer_index+1, random_state=random_state)

        logger.info("Added {} neuron(s) to layer {}; architecture is {}"
                    .format(count, layer_index, self.get_architecture()))

    def prune_layer_neuron(self, layer_index, neuron_index):
        self._check_structural_layer_index(layer_index)
        self._delete_variable(layer_index+1, neuron_index)
        logger.info("Removed neuron {} of layer {}; architecture is {}"
                    .format(neuron_index, layer_index,
                            self.get_architecture()))

    def __repr__(self):
        return "<{} architecture={}>".format(
            self.__class__.__name__, self.get_architecture())
