from collections import namedtuple

from layernet.activation import get_activation_function
from layernet.core.exception import ConfigurationError


# Configuration record for a long short-term memory layer
LongShortTermMemoryConfig = namedtuple(
    'LongShortTermMemoryConfig',
    ['inputs_number', 'neurons_number', 'timesteps', 'activation_function',
     'recurrent_activation_function', 'initial_hidden_state',
     'initial_cell_state'])

LongShortTermMemoryConfig.__new__.__defaults__ = (
    1, 'HyperbolicTangent', 'HardSigmoid', 0.0, 0.0)


# Configuration record for a perceptron layer
PerceptronConfig = namedtuple(
    'PerceptronConfig',
    ['inputs_number', 'neurons_number', 'activation_function'])

PerceptronConfig.__new__.__defaults__ = ('HyperbolicTangent',)


def _validate_count(value, name, minimum=0):
    if isinstance(value, bool) or not isinstance(value, int):
        try:
            is_integral = float(value).is_integer()
        except (TypeError, ValueError):
            is_integral = False
        if not is_integral:
            msg = "`{}` ({}) must be an integer"
            raise ConfigurationError(msg.format(name, value))
        value = int(value)

    if value < minimum:
        msg = "`{}` ({}) must be at least {}"
        raise ConfigurationError(msg.format(name, value, minimum))

    return value


def validate_counts(inputs_number, neurons_number):
    """ Returns `inputs_number` and `neurons_number` as ints or raises a
    ConfigurationError. Zero counts are accepted.
    """
    return (_validate_count(inputs_number, 'inputs_number'),
            _validate_count(neurons_number, 'neurons_number'))


def validate_variables_number(variables_number):
    """ Count validation for layers with one neuron per input """
    return _validate_count(variables_number, 'neurons_number')


def validate_timesteps(timesteps):
    return _validate_count(timesteps, 'timesteps', minimum=1)


def validate_long_short_term_memory_config(config):
    """ Validate a LongShortTermMemoryConfig, returning a normalized copy
    """
    if not isinstance(config, LongShortTermMemoryConfig):
        msg = "config ({}) is not a LongShortTermMemoryConfig"
        raise ConfigurationError(msg.format(type(config)))

    inputs_number, neurons_number = validate_counts(
        config.inputs_number, config.neurons_number)

    try:
        initial_hidden_state = float(config.initial_hidden_state)
        initial_cell_state = float(config.initial_cell_state)
    except (TypeError, ValueError):
        msg = "Initial states must be numeric"
        raise ConfigurationError(msg)

    return config._replace(
        inputs_number=inputs_number,
        neurons_number=neurons_number,
        timesteps=validate_timesteps(config.timesteps),
        activation_function=get_activation_function(
            config.activation_function),
        recurrent_activation_function=get_activation_function(
            config.recurrent_activation_function),
        initial_hidden_state=initial_hidden_state,
        initial_cell_state=initial_cell_state,
    )


def validate_perceptron_config(config):
    """ Validate a PerceptronConfig, returning a normalized copy
    """
    if not isinstance(config, PerceptronConfig):
        msg = "config ({}) is not a PerceptronConfig"
        raise ConfigurationError(msg.format(type(config)))

    inputs_number, neurons_number = validate_counts(
        config.inputs_number, config.neurons_number)

    return config._replace(
        inputs_number=inputs_number,
        neurons_number=neurons_number,
        activation_function=get_activation_function(
            config.activation_function),
    )
