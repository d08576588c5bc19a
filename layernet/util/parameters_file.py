""" Save and load a multilayer perceptron in hdf5 format.

The layout assuming `hf` is an h5py `File` is as follows::

    attrs
    |_ layers_number
    'layer-i'
    |_ attrs
    |  |_ layer_type
    |  |_ (configuration of the layer; see below)
    |_ parameters
    |_ descriptives (scaling and unscaling layers)
    |_ initial_hidden_state, initial_cell_state (long short-term memory)
"""
import logging
import os

import h5py

from layernet.core.exception import ConfigurationError
from layernet.core.logger import log_progress
from layernet.layer.layer_base import LayerType
from layernet.layer.long_short_term_memory import LongShortTermMemoryLayer
from layernet.layer.perceptron import PerceptronLayer
from layernet.layer.probabilistic import ProbabilisticLayer
from layernet.layer.scaling import ScalingLayer, UnscalingLayer
from layernet.multilayer.multilayer_perceptron import MultilayerPerceptron


_logger_name = __name__.rsplit('.', 1)[-1]
logger = logging.getLogger(_logger_name)

LAYER_KEY = 'layer-{:d}'
PARAMETERS_KEY = 'parameters'
DESCRIPTIVES_KEY = 'descriptives'
INITIAL_HIDDEN_STATE_KEY = 'initial_hidden_state'
INITIAL_CELL_STATE_KEY = 'initial_cell_state'


def _write_layer(group, layer):
    group.attrs['layer_type'] = layer.layer_type.value

    if layer.layer_type in (LayerType.Scaling, LayerType.Unscaling):
        group.attrs['method'] = layer.method.name
        group.create_dataset(DESCRIPTIVES_KEY,
                             data=layer.get_descriptives_matrix())
        return

    group.attrs['inputs_number'] = layer.get_inputs_number()
    group.attrs['neurons_number'] = layer.get_neurons_number()

    if layer.layer_type == LayerType.Probabilistic:
        group.attrs['activation_function'] = layer.activation_function
    else:
        group.attrs['activation_function'] = layer.activation_function.value

    if layer.layer_type == LayerType.LongShortTermMemory:
        group.attrs['timesteps'] = layer.timesteps
        group.attrs['recurrent_activation_function'] = (
            layer.recurrent_activation_function.value)
        group.attrs['stateful'] = layer.stateful
        group.create_dataset(INITIAL_HIDDEN_STATE_KEY,
                             data=layer.initial_hidden_state)
        group.create_dataset(INITIAL_CELL_STATE_KEY,
                             data=layer.initial_cell_state)

    group.create_dataset(PARAMETERS_KEY, data=layer.get_parameters())


def _read_layer(group):
    try:
        layer_type = LayerType(group.attrs['layer_type'])
    except (KeyError, ValueError):
        msg = "Group {} does not hold a known layer"
        raise ConfigurationError(msg.format(group.name))

    if layer_type == LayerType.Scaling:
        return ScalingLayer(descriptives=group[DESCRIPTIVES_KEY][...],
                            scaling_method=group.attrs['method'])

    elif layer_type == LayerType.Unscaling:
        return UnscalingLayer(descriptives=group[DESCRIPTIVES_KEY][...],
                              unscaling_method=group.attrs['method'])

    inputs_number = int(group.attrs['inputs_number'])
    neurons_number = int(group.attrs['neurons_number'])
    activation_function = group.attrs['activation_function']

    if layer_type == LayerType.Perceptron:
        layer = PerceptronLayer(inputs_number=inputs_number,
                                neurons_number=neurons_number,
                                activation_function=activation_function)

    elif layer_type == LayerType.Probabilistic:
        layer = ProbabilisticLayer(inputs_number=inputs_number,
                                   neurons_number=neurons_number,
                                   activation_function=activation_function)

    else:
        layer = LongShortTermMemoryLayer(
            inputs_number=inputs_number,
            neurons_number=neurons_number,
            timesteps=int(group.attrs['timesteps']),
            activation_function=activation_function,
            recurrent_activation_function=group.attrs[
                'recurrent_activation_function'],
            stateful=bool(group.attrs['stateful']))
        layer.initial_hidden_state = group[INITIAL_HIDDEN_STATE_KEY][...]
        layer.initial_cell_state = group[INITIAL_CELL_STATE_KEY][...]

    layer.set_parameters(group[PARAMETERS_KEY][...])

    return layer


def save_multilayer_perceptron(multilayer_perceptron, filename,
                               overwrite=False):
    """ Save the layers of `multilayer_perceptron` to an hdf5 file

    Parameters
    ----------
    multilayer_perceptron: MultilayerPerceptron
        The network to save.

    filename: str
        The hdf5 file path.

    overwrite: bool, default=False
        If False, an existing file is never replaced.
    """
    if os.path.exists(filename) and not overwrite:
        msg = "File {} already exists"
        raise FileExistsError(msg.format(filename))

    layers = multilayer_perceptron.get_layers()

    with h5py.File(filename, mode='w') as hf:
        hf.attrs['layers_number'] = len(layers)

        for i, layer in enumerate(layers):
            log_progress(logger, "Saving {!r}".format(layer),
                         i+1, len(layers))
            _write_layer(hf.create_group(LAYER_KEY.format(i)), layer)

    logger.info("Saved multilayer perceptron to {}".format(filename))


def load_multilayer_perceptron(filename, random_state=None):
    """ Load a multilayer perceptron saved by `save_multilayer_perceptron`

    Parameters
    ----------
    filename: str
        The hdf5 file path.

    random_state: numpy.random.RandomState, default=None
        Passed on to the loaded network.
    """
    with h5py.File(filename, mode='r') as hf:
        layers_number = int(hf.attrs['layers_number'])
        layers = []

        for i in range(layers_number):
            key = LAYER_KEY.format(i)

            if key not in hf:
                msg = "File {} has no group {}"
                raise ConfigurationError(msg.format(filename, key))

            layers.append(_read_layer(hf[key]))
            log_progress(logger, "Loaded {!r}".format(layers[-1]),
                         i+1, layers_number)

    multilayer_perceptron = MultilayerPerceptron(
        layers=layers, random_state=random_state)

    logger.info("Loaded multilayer perceptron from {}".format(filename))

    return multilayer_perceptron
