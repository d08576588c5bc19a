import abc
from collections import OrderedDict
import enum

import numpy

from layernet.core.exception import ConfigurationError


class LayerType(enum.Enum):
    Scaling = 'Scaling'
    Perceptron = 'Perceptron'
    Probabilistic = 'Probabilistic'
    LongShortTermMemory = 'LongShortTermMemory'
    Unscaling = 'Unscaling'


def glorot_uniform(random_state, shape, fan_in, fan_out):
    """ Samples an array of `shape` from the Glorot (Xavier) uniform
    distribution for the given fan in and fan out
    """
    if fan_in + fan_out == 0:
        return numpy.zeros(shape)

    limit = numpy.sqrt(6.0 / (fan_in + fan_out))
    return random_state.uniform(low=-limit, high=limit, size=shape)


def new_weights(random_state, shape, fan_in, fan_out):
    """ Values for weights added by a structural change: zeros, or
    Glorot uniform when a random state is given
    """
    if random_state is None:
        return numpy.zeros(shape)
    return glorot_uniform(random_state, shape, fan_in, fan_out)


class Layer(abc.ABC):
    """ The abstract base class for layers.

    Every layer exposes the same contract: forward propagation, error
    gradient computation, parameter access through a flat vector, a
    local input Jacobian and Hessian form, and structural resize helpers.
    The kind of layer is given by the `layer_type` tag, which the
    multilayer perceptron uses for dispatch.
    """
    layer_type = None

    # Pass-through layers have one neuron per input (scaling, unscaling)
    is_passthrough = False

    @abc.abstractmethod
    def get_inputs_number(self):
        raise NotImplementedError

    @abc.abstractmethod
    def get_neurons_number(self):
        raise NotImplementedError

    def get_input_width(self):
        """ The number of input columns consumed per sample """
        return self.get_inputs_number()

    def is_empty(self):
        return self.get_inputs_number() == 0 and self.get_neurons_number() == 0

    ###########################################################
    # Parameters

    def parameter_groups(self):
        """ Returns an OrderedDict mapping each parameter group name to the
        layer's own array, in flat parameter order
        """
        return OrderedDict()

    def get_parameters_number(self):
        return sum(group.size for group in self.parameter_groups().values())

    def get_parameters(self):
        """ Returns a new flat array with all the parameters of the layer """
        groups = self.parameter_groups()

        if not groups:
            return numpy.zeros(0)

        return numpy.hstack([group.ravel() for group in groups.values()])

    def set_parameters(self, parameters, index=0):
        """ Copy the layer parameters from `parameters`, starting at `index`

        Parameters
        ----------
        parameters: ndarray, ndim=1
            A flat parameter vector, possibly holding other layers' values.

        index: int, default=0
            The position in `parameters` of the layer's first parameter.
        """
        parameters = numpy.asarray(parameters, dtype=float)
        parameters_number = self.get_parameters_number()

        if parameters.ndim != 1:
            msg = "`parameters` must be one dimensional, got ndim={}"
            raise ConfigurationError(msg.format(parameters.ndim))

        if index < 0 or index + parameters_number > parameters.shape[0]:
            msg = ("Cannot read {} parameters at index {} from a vector "
                   "of size {}")
            raise ConfigurationError(msg.format(
                parameters_number, index, parameters.shape[0]))

        for group in self.parameter_groups().values():
            size = group.size
            group[...] = parameters[index:index+size].reshape(group.shape)
            index += size

    def insert_gradient(self, back_propagation, index, gradient):
        """ Write the layer gradient from `back_propagation` into the flat
        `gradient` vector starting at `index`
        """
        for group_gradient in back_propagation.gradients.values():
            size = group_gradient.size
            gradient[index:index+size] = group_gradient.ravel()
            index += size

    def set_parameters_constant(self, value):
        for group in self.parameter_groups().values():
            group.fill(value)

    ###########################################################
    # Propagation

    def _validate_inputs(self, inputs):
        """ Returns `inputs` as a 2d float array or raises a
        ConfigurationError if its shape doesn't match the layer
        """
        inputs = numpy.asarray(inputs, dtype=float)

        if inputs.ndim != 2:
            msg = "Inputs must be 2d (batch, inputs), got shape {}"
            raise ConfigurationError(msg.format(inputs.shape))

        if inputs.shape[1] != self.get_input_width():
            msg = "Inputs have {} columns but the layer expects {}"
            raise ConfigurationError(msg.format(
                inputs.shape[1], self.get_input_width()))

        return inputs

    def _validate_input_vector(self, input_vector):
        input_vector = numpy.asarray(input_vector, dtype=float)

        if input_vector.shape != (self.get_input_width(),):
            msg = "Input vector has shape {} but should be ({},)"
            raise ConfigurationError(msg.format(
                input_vector.shape, self.get_input_width()))

        return input_vector

    def _validate_delta(self, forward_propagation, delta):
        delta = numpy.asarray(delta, dtype=float)

        if delta.shape != forward_propagation.outputs.shape:
            msg = "Delta has shape {} but the outputs have shape {}"
            raise ConfigurationError(msg.format(
                delta.shape, forward_propagation.outputs.shape))

        return delta

    @abc.abstractmethod
    def forward_propagate(self, inputs):
        raise NotImplementedError

    def calculate_outputs(self, inputs):
        return self.forward_propagate(inputs).outputs

    @abc.abstractmethod
    def calculate_error_gradient(self, forward_propagation, delta):
        """ Returns a BackPropagation record given the forward record and
        `delta`, the derivative of the error with respect to the outputs
        """
        raise NotImplementedError

    @abc.abstractmethod
    def calculate_jacobian(self, input_vector):
        """ Returns the derivatives of the outputs with respect to the
        inputs for a single sample, shape (neurons, input_width)
        """
        raise NotImplementedError

    @abc.abstractmethod
    def calculate_hessian_form(self, input_vector):
        """ Returns the second derivatives of each output with respect to the
        inputs for a single sample, shape (neurons, input_width, input_width)
        """
        raise NotImplementedError

    ###########################################################
    # Structure

    @abc.abstractmethod
    def insert_input(self, random_state=None):
        raise NotImplementedError

    @abc.abstractmethod
    def delete_input(self, index):
        raise NotImplementedError

    @abc.abstractmethod
    def insert_neuron(self, random_state=None):
        raise NotImplementedError

    @abc.abstractmethod
    def delete_neuron(self, index):
        raise NotImplementedError

    def __repr__(self):
        return "<{} inputs={:d}, neurons={:d}>".format(
            self.__class__.__name__, self.get_inputs_number(),
            self.get_neurons_number())
