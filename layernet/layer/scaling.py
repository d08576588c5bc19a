"""
Scaling and unscaling layers.

Both layers transform each column independently using precomputed
descriptive statistics (minimum, maximum, mean and standard deviation per
variable). They have no parameters and one neuron per input.

Scaling maps raw inputs into the range the network works in, and
unscaling maps the network outputs back to the original range of the
target variables. Degenerate statistics (zero range, zero standard
deviation) and logarithms of non-positive values are clamped to safe
values rather than raised, since constant-valued variables are common.
"""
from collections import namedtuple, OrderedDict
import enum
import logging

import numpy

from layernet.core.config import validate_variables_number
from layernet.core.exception import ConfigurationError, StructuralError
from layernet.layer.layer_base import Layer, LayerType
from layernet.layer.propagation import BackPropagation, ForwardPropagation


_logger_name = __name__.rsplit('.', 1)[-1]
logger = logging.getLogger(_logger_name)

# Smallest magnitude treated as a non-zero range or standard deviation
DEGENERATE_TOLERANCE = 1e-12

# Floor for the argument of the logarithm in logarithmic scaling
LOG_FLOOR = 1e-12


Descriptives = namedtuple(
    'Descriptives', ['minimum', 'maximum', 'mean', 'standard_deviation'])
Descriptives.__new__.__defaults__ = (-1.0, 1.0, 0.0, 1.0)

DEFAULT_DESCRIPTIVES = Descriptives()

DESCRIPTIVES_COLUMNS = {name: i for i, name in enumerate(Descriptives._fields)}


class ScalingMethod(enum.IntEnum):
    NoScaling = 0
    MinimumMaximum = 1
    MeanStandardDeviation = 2
    StandardDeviation = 3
    Logarithmic = 4


class UnscalingMethod(enum.IntEnum):
    NoUnscaling = 0
    MinimumMaximum = 1
    MeanStandardDeviation = 2
    Logarithmic = 3


def _parse_method(method, method_class):
    if isinstance(method, method_class):
        return method
    if isinstance(method, str):
        try:
            return method_class[method]
        except KeyError:
            pass
    else:
        try:
            return method_class(method)
        except ValueError:
            pass

    msg = "Unknown {}: {}"
    raise ConfigurationError(msg.format(method_class.__name__, method))


def _safe_denominator(values, name):
    """ Replace (near) zero entries by one, logging how many there were """
    values = numpy.array(values, dtype=float)
    degenerate = numpy.abs(values) < DEGENERATE_TOLERANCE

    if degenerate.any():
        msg = "{} variable(s) with zero {}; using 1 instead"
        logger.debug(msg.format(int(degenerate.sum()), name))
        values[degenerate] = 1.0

    return values


class _DescriptivesLayer(Layer):
    """ Shared storage and access of the descriptive statistics """

    is_passthrough = True

    method_class = None

    def __init__(self, neurons_number=0, descriptives=None, method=None):
        neurons_number = validate_variables_number(neurons_number)

        if descriptives is None:
            self.descriptives = numpy.tile(
                numpy.array(DEFAULT_DESCRIPTIVES, dtype=float),
                (neurons_number, 1))
        else:
            self.set_descriptives(descriptives)

        self.set_method(method)

    def set(self, neurons_number=0):
        """ Resize to `neurons_number` variables with default statistics """
        neurons_number = validate_variables_number(neurons_number)
        self.descriptives = numpy.tile(
            numpy.array(DEFAULT_DESCRIPTIVES, dtype=float),
            (neurons_number, 1))

    def get_inputs_number(self):
        return self.descriptives.shape[0]

    def get_neurons_number(self):
        return self.descriptives.shape[0]

    def set_method(self, method):
        self.method = _parse_method(method, self.method_class)

    ###########################################################
    # Descriptives

    def get_descriptives(self):
        """ Returns a list of `Descriptives`, one per variable """
        return [Descriptives(*row) for row in self.descriptives.tolist()]

    def get_descriptives_matrix(self):
        """ Returns an (n, 4) array with columns minimum, maximum, mean and
        standard deviation
        """
        return self.descriptives.copy()

    def set_descriptives(self, descriptives):
        """ Set the statistics from a list of `Descriptives` or from an
        (n, 4) array, replacing the number of variables
        """
        matrix = numpy.array(descriptives, dtype=float)

        if matrix.size == 0:
            matrix = matrix.reshape(0, 4)

        if matrix.ndim != 2 or matrix.shape[1] != 4:
            msg = "descriptives should be shape (n, 4), got {}"
            raise ConfigurationError(msg.format(matrix.shape))

        self.descriptives = matrix

    def set_item_descriptives(self, index, descriptives):
        self._check_index(index)
        row = numpy.array(descriptives, dtype=float)

        if row.shape != (4,):
            msg = "descriptives should be shape (4,), got {}"
            raise ConfigurationError(msg.format(row.shape))

        self.descriptives[index] = row

    def _check_index(self, index):
        if not 0 <= index < self.get_neurons_number():
            msg = "Variable index {} out of range for {} variables"
            raise ConfigurationError(
                msg.format(index, self.get_neurons_number()))

    def _set_statistic(self, name, index, value):
        self._check_index(index)
        self.descriptives[index, DESCRIPTIVES_COLUMNS[name]] = value

    def set_minimum(self, index, value):
        self._set_statistic('minimum', index, value)

    def set_maximum(self, index, value):
        self._set_statistic('maximum', index, value)

    def set_mean(self, index, value):
        self._set_statistic('mean', index, value)

    def set_standard_deviation(self, index, value):
        self._set_statistic('standard_deviation', index, value)

    def get_minimums(self):
        return self.descriptives[:, 0].copy()

    def get_maximums(self):
        return self.descriptives[:, 1].copy()

    def get_means(self):
        return self.descriptives[:, 2].copy()

    def get_standard_deviations(self):
        return self.descriptives[:, 3].copy()

    ###########################################################
    # Propagation

    def _transform(self, inputs):
        """ Returns outputs, first and second derivatives (elementwise) """
        raise NotImplementedError

    def calculate_second_derivatives(self, inputs):
        """ Elementwise second derivatives of the outputs w.r.t. the inputs
        """
        inputs = self._validate_inputs(inputs)
        return self._transform(inputs)[2]

    def forward_propagate(self, inputs):
        inputs = self._validate_inputs(inputs)
        outputs, derivatives, _ = self._transform(inputs)

        return ForwardPropagation(
            inputs=inputs,
            combinations=inputs,
            activations=outputs,
            activations_derivatives=derivatives,
            outputs=outputs)

    def calculate_error_gradient(self, forward_propagation, delta):
        delta = self._validate_delta(forward_propagation, delta)
        derivatives = forward_propagation.activations_derivatives

        return BackPropagation(
            delta=delta,
            combinations_delta=delta * derivatives,
            gradients=OrderedDict(),
            input_delta=None)

    def calculate_jacobian(self, input_vector):
        input_vector = self._validate_input_vector(input_vector)
        _, derivatives, _ = self._transform(input_vector[None])
        return numpy.diag(derivatives[0])

    def calculate_hessian_form(self, input_vector):
        input_vector = self._validate_input_vector(input_vector)
        _, _, second_derivatives = self._transform(input_vector[None])

        n = self.get_neurons_number()
        hessian = numpy.zeros((n, n, n))
        index = numpy.arange(n)
        hessian[index, index, index] = second_derivatives[0]

        return hessian

    ###########################################################
    # Structure

    def insert_input(self, random_state=None):
        self.descriptives = numpy.vstack([
            self.descriptives,
            numpy.array(DEFAULT_DESCRIPTIVES, dtype=float)])

    def delete_input(self, index):
        if not 0 <= index < self.get_inputs_number():
            msg = "Variable index {} out of range for {} variables"
            raise StructuralError(msg.format(index, self.get_inputs_number()))
        self.descriptives = numpy.delete(self.descriptives, index, axis=0)

    # Inputs and neurons are the same variables
    insert_neuron = insert_input
    delete_neuron = delete_input

    def __repr__(self):
        return "<{} variables={:d}, method={}>".format(
            self.__class__.__name__, self.get_neurons_number(),
            self.method.name)


class ScalingLayer(_DescriptivesLayer):
    """ Scales each input variable with its descriptive statistics.

    * MinimumMaximum: ``2*(x - min)/(max - min) - 1``
    * MeanStandardDeviation: ``(x - mean)/std``
    * StandardDeviation: ``x/std``
    * Logarithmic: ``2*(log(x) - min)/(max - min) - 1``
    """
    layer_type = LayerType.Scaling
    method_class = ScalingMethod

    def __init__(self, neurons_number=0, descriptives=None,
                 scaling_method=ScalingMethod.MinimumMaximum):
        super(ScalingLayer, self).__init__(
            neurons_number=neurons_number, descriptives=descriptives,
            method=scaling_method)

    @property
    def scaling_method(self):
        return self.method

    def get_scaling_method(self):
        return self.method

    def set_scaling_method(self, scaling_method):
        self.set_method(scaling_method)

    def _affine_coefficients(self):
        """ Per-variable slope and intercept of the (log-)affine map """
        n = self.get_neurons_number()
        minimums, maximums, means, deviations = self.descriptives.T

        if self.method in (ScalingMethod.MinimumMaximum,
                           ScalingMethod.Logarithmic):
            ranges = maximums - minimums
            degenerate = numpy.abs(ranges) < DEGENERATE_TOLERANCE
            if degenerate.any():
                msg = "{} variable(s) with zero range are not scaled"
                logger.debug(msg.format(int(degenerate.sum())))
            safe_ranges = numpy.where(degenerate, 1.0, ranges)
            slopes = numpy.where(degenerate, 1.0, 2.0 / safe_ranges)
            intercepts = numpy.where(
                degenerate, 0.0, -2.0 * minimums / safe_ranges - 1.0)
        elif self.method == ScalingMethod.MeanStandardDeviation:
            deviations = _safe_denominator(deviations, 'standard deviation')
            slopes = 1.0 / deviations
            intercepts = -means / deviations
        elif self.method == ScalingMethod.StandardDeviation:
            deviations = _safe_denominator(deviations, 'standard deviation')
            slopes = 1.0 / deviations
            intercepts = numpy.zeros(n)
        else:
            slopes = numpy.ones(n)
            intercepts = numpy.zeros(n)

        return slopes, intercepts

    def _transform(self, inputs):
        slopes, intercepts = self._affine_coefficients()

        if self.method == ScalingMethod.Logarithmic:
            nonpositive = inputs < LOG_FLOOR
            if nonpositive.any():
                msg = ("{} non-positive value(s) in logarithmic scaling "
                       "clamped to {}")
                logger.warning(msg.format(int(nonpositive.sum()), LOG_FLOOR))
            safe_inputs = numpy.maximum(inputs, LOG_FLOOR)

            outputs = slopes * numpy.log(safe_inputs) + intercepts
            derivatives = numpy.where(nonpositive, 0.0, slopes / safe_inputs)
            second = numpy.where(
                nonpositive, 0.0, -slopes / safe_inputs**2)
        else:
            outputs = slopes * inputs + intercepts
            derivatives = numpy.broadcast_to(slopes, inputs.shape).copy()
            second = numpy.zeros_like(inputs)

        return outputs, derivatives, second


class UnscalingLayer(_DescriptivesLayer):
    """ Maps network outputs back to the range of the target variables.

    * MinimumMaximum: ``0.5*(y + 1)*(max - min) + min``
    * MeanStandardDeviation: ``mean + std*y``
    * Logarithmic: ``exp(0.5*(y + 1)*(max - min) + min)``
    """
    layer_type = LayerType.Unscaling
    method_class = UnscalingMethod

    def __init__(self, neurons_number=0, descriptives=None,
                 unscaling_method=UnscalingMethod.MinimumMaximum):
        super(UnscalingLayer, self).__init__(
            neurons_number=neurons_number, descriptives=descriptives,
            method=unscaling_method)

    @property
    def unscaling_method(self):
        return self.method

    def get_unscaling_method(self):
        return self.method

    def set_unscaling_method(self, unscaling_method):
        self.set_method(unscaling_method)

    def _affine_coefficients(self):
        n = self.get_neurons_number()
        minimums, maximums, means, deviations = self.descriptives.T

        if self.method in (UnscalingMethod.MinimumMaximum,
                           UnscalingMethod.Logarithmic):
            half_ranges = 0.5 * (maximums - minimums)
            slopes = half_ranges
            intercepts = half_ranges + minimums
        elif self.method == UnscalingMethod.MeanStandardDeviation:
            slopes = _safe_denominator(deviations, 'standard deviation')
            intercepts = means.copy()
        else:
            slopes = numpy.ones(n)
            intercepts = numpy.zeros(n)

        return slopes, intercepts

    def _transform(self, inputs):
        slopes, intercepts = self._affine_coefficients()
        affine = slopes * inputs + intercepts

        if self.method == UnscalingMethod.Logarithmic:
            outputs = numpy.exp(affine)
            derivatives = slopes * outputs
            second = slopes**2 * outputs
        else:
            outputs = affine
            derivatives = numpy.broadcast_to(slopes, inputs.shape).copy()
            second = numpy.zeros_like(inputs)

        return outputs, derivatives, second
