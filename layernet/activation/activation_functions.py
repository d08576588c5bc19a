"""
Activation functions shared by all layers.

Each function identifier maps to a closed form for the activation, its
first derivative and its second derivative with respect to the
combination (the pre-activation value). Scalars and arrays are handled by
the same code so that both give identical results.
"""
import enum
import logging
import warnings

import numpy
from scipy.special import expit

from layernet.core.exception import ConfigurationError, NumericalWarning


_logger_name = __name__.rsplit('.', 1)[-1]
logger = logging.getLogger(_logger_name)

# Combinations of saturating functions beyond this magnitude are clamped.
SATURATION_LIMIT = 500.0

EXPONENTIAL_LINEAR_ALPHA = 1.0

SELU_LAMBDA = 1.0507
SELU_ALPHA = 1.67326

HARD_SIGMOID_SLOPE = 0.2
HARD_SIGMOID_BOUND = 2.5


class ActivationFunction(enum.Enum):
    Threshold = 'Threshold'
    SymmetricThreshold = 'SymmetricThreshold'
    Logistic = 'Logistic'
    HyperbolicTangent = 'HyperbolicTangent'
    Linear = 'Linear'
    RectifiedLinear = 'RectifiedLinear'
    ExponentialLinear = 'ExponentialLinear'
    ScaledExponentialLinear = 'ScaledExponentialLinear'
    SoftPlus = 'SoftPlus'
    SoftSign = 'SoftSign'
    HardSigmoid = 'HardSigmoid'


# Bounded functions, constant beyond the saturation limit
SATURATING_FUNCTIONS = frozenset([
    ActivationFunction.Threshold,
    ActivationFunction.SymmetricThreshold,
    ActivationFunction.Logistic,
    ActivationFunction.HyperbolicTangent,
    ActivationFunction.SoftSign,
    ActivationFunction.HardSigmoid,
])


def get_activation_function(function):
    """ Returns the `ActivationFunction` member for `function`, which may be
    a member already or its name
    """
    if isinstance(function, ActivationFunction):
        return function

    try:
        return ActivationFunction(function)
    except ValueError:
        msg = "Unknown activation function: {}"
        raise ConfigurationError(msg.format(function))


def clip_combinations(combinations, function=None):
    """ Clamp combinations to [-SATURATION_LIMIT, SATURATION_LIMIT],
    issuing a `NumericalWarning` when any value is outside that range
    or is not a number.

    When `function` is given, only functions in `SATURATING_FUNCTIONS`
    are clamped; the others get their combinations unchanged.
    """
    combinations = numpy.asarray(combinations, dtype=float)

    if (function is not None and
            get_activation_function(function) not in SATURATING_FUNCTIONS):
        return combinations

    saturated = ~(numpy.abs(combinations) <= SATURATION_LIMIT)

    if saturated.any():
        msg = ("{} combination value(s) outside [-{limit}, {limit}] "
               "were clamped").format(int(saturated.sum()),
                                      limit=SATURATION_LIMIT)
        logger.warning(msg)
        warnings.warn(msg, NumericalWarning, stacklevel=3)

        combinations = numpy.nan_to_num(combinations)
        combinations = numpy.clip(
            combinations, -SATURATION_LIMIT, SATURATION_LIMIT)

    return combinations


def _as_output(values, scalar):
    return values[()] if scalar else values


def _activations(x, function):

    if function is ActivationFunction.Threshold:
        return numpy.where(x < 0, 0.0, 1.0)

    elif function is ActivationFunction.SymmetricThreshold:
        return numpy.where(x < 0, -1.0, 1.0)

    elif function is ActivationFunction.Logistic:
        return expit(x)

    elif function is ActivationFunction.HyperbolicTangent:
        return numpy.tanh(x)

    elif function is ActivationFunction.Linear:
        return x.copy()

    elif function is ActivationFunction.RectifiedLinear:
        return numpy.maximum(x, 0.0)

    elif function is ActivationFunction.ExponentialLinear:
        # Only exponentiate the negative part
        negative = EXPONENTIAL_LINEAR_ALPHA * numpy.expm1(numpy.minimum(x, 0))
        return numpy.where(x < 0, negative, x)

    elif function is ActivationFunction.ScaledExponentialLinear:
        negative = SELU_ALPHA * numpy.expm1(numpy.minimum(x, 0))
        return SELU_LAMBDA * numpy.where(x < 0, negative, x)

    elif function is ActivationFunction.SoftPlus:
        return numpy.logaddexp(0.0, x)

    elif function is ActivationFunction.SoftSign:
        return x / (1.0 + numpy.abs(x))

    elif function is ActivationFunction.HardSigmoid:
        return numpy.clip(HARD_SIGMOID_SLOPE*x + 0.5, 0.0, 1.0)

    msg = "Unknown activation function: {}"
    raise ConfigurationError(msg.format(function))


def _derivatives(x, activations, function):

    if function in (ActivationFunction.Threshold,
                    ActivationFunction.SymmetricThreshold):
        return numpy.zeros_like(x)

    elif function is ActivationFunction.Logistic:
        return activations * (1.0 - activations)

    elif function is ActivationFunction.HyperbolicTangent:
        return 1.0 - activations**2

    elif function is ActivationFunction.Linear:
        return numpy.ones_like(x)

    elif function is ActivationFunction.RectifiedLinear:
        return numpy.where(x > 0, 1.0, 0.0)

    elif function is ActivationFunction.ExponentialLinear:
        exp_negative = numpy.exp(numpy.minimum(x, 0))
        return numpy.where(x < 0, EXPONENTIAL_LINEAR_ALPHA*exp_negative, 1.0)

    elif function is ActivationFunction.ScaledExponentialLinear:
        exp_negative = numpy.exp(numpy.minimum(x, 0))
        return SELU_LAMBDA * numpy.where(x < 0, SELU_ALPHA*exp_negative, 1.0)

    elif function is ActivationFunction.SoftPlus:
        return expit(x)

    elif function is ActivationFunction.SoftSign:
        return 1.0 / (1.0 + numpy.abs(x))**2

    elif function is ActivationFunction.HardSigmoid:
        inside = numpy.abs(x) < HARD_SIGMOID_BOUND
        return numpy.where(inside, HARD_SIGMOID_SLOPE, 0.0)

    msg = "Unknown activation function: {}"
    raise ConfigurationError(msg.format(function))


def _second_derivatives(x, activations, function):

    if function is ActivationFunction.Logistic:
        return activations * (1.0 - activations) * (1.0 - 2.0*activations)

    elif function is ActivationFunction.HyperbolicTangent:
        return -2.0 * activations * (1.0 - activations**2)

    elif function is ActivationFunction.ExponentialLinear:
        exp_negative = numpy.exp(numpy.minimum(x, 0))
        return numpy.where(x < 0, EXPONENTIAL_LINEAR_ALPHA*exp_negative, 0.0)

    elif function is ActivationFunction.ScaledExponentialLinear:
        exp_negative = numpy.exp(numpy.minimum(x, 0))
        return SELU_LAMBDA * numpy.where(x < 0, SELU_ALPHA*exp_negative, 0.0)

    elif function is ActivationFunction.SoftPlus:
        logistic = expit(x)
        return logistic * (1.0 - logistic)

    elif function is ActivationFunction.SoftSign:
        return -2.0 * numpy.sign(x) / (1.0 + numpy.abs(x))**3

    # Piecewise linear or constant functions
    return numpy.zeros_like(x)


def calculate_activations(combinations, function):
    """
    Parameters
    ----------
    combinations: float or ndarray
        The pre-activation values.

    function: ActivationFunction or str
        The activation function identifier.

    Returns
    -------
    activations: float or ndarray, same shape as `combinations`
    """
    function = get_activation_function(function)
    scalar = numpy.ndim(combinations) == 0

    x = clip_combinations(combinations, function)

    return _as_output(_activations(x, function), scalar)


def calculate_activations_derivatives(combinations, function):
    """
    Returns
    -------
    activations, activations_derivatives: float or ndarray
        The activation values and the first derivatives with respect
        to the combinations.
    """
    function = get_activation_function(function)
    scalar = numpy.ndim(combinations) == 0

    x = clip_combinations(combinations, function)
    activations = _activations(x, function)
    derivatives = _derivatives(x, activations, function)

    return _as_output(activations, scalar), _as_output(derivatives, scalar)


def calculate_activations_second_derivatives(combinations, function):
    """
    Returns
    -------
    activations, activations_derivatives, activations_second_derivatives
    """
    function = get_activation_function(function)
    scalar = numpy.ndim(combinations) == 0

    x = clip_combinations(combinations, function)
    activations = _activations(x, function)
    derivatives = _derivatives(x, activations, function)
    second_derivatives = _second_derivatives(x, activations, function)

    return (_as_output(activations, scalar),
            _as_output(derivatives, scalar),
            _as_output(second_derivatives, scalar))
