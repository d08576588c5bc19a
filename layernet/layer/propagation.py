from collections import namedtuple


# Forward record for perceptron, probabilistic, scaling and unscaling layers.
# Arrays are (batch, neurons) except `inputs`, which is (batch, inputs).
# For the softmax probabilistic activation, `activations_derivatives` holds
# the per-row Jacobian, shape (batch, neurons, neurons).
ForwardPropagation = namedtuple(
    'ForwardPropagation',
    ['inputs', 'combinations', 'activations', 'activations_derivatives',
     'outputs'])


# Forward record for the long short-term memory layer. The gate entries are
# dicts keyed by gate name holding (timesteps, batch, neurons) arrays.
RecurrentForwardPropagation = namedtuple(
    'RecurrentForwardPropagation',
    ['inputs', 'input_shape', 'initial_state', 'combinations', 'activations',
     'activations_derivatives', 'cell_states', 'cell_activations',
     'cell_activations_derivatives', 'hidden_states', 'outputs',
     'final_state', 'return_sequences'])


# Backward record. `gradients` is an OrderedDict in parameter order.
# `input_delta` is only filled by layers that compute it themselves (the
# long short-term memory layer); otherwise it is None.
BackPropagation = namedtuple(
    'BackPropagation',
    ['delta', 'combinations_delta', 'gradients', 'input_delta'])


# Hidden and cell state, each (batch, neurons).
RecurrentState = namedtuple('RecurrentState', ['hidden', 'cell'])


# Forward record for a whole multilayer perceptron.
MultilayerForwardPropagation = namedtuple(
    'MultilayerForwardPropagation', ['inputs', 'layers', 'outputs'])


# Backward record for a whole multilayer perceptron.
MultilayerBackPropagation = namedtuple(
    'MultilayerBackPropagation', ['layers', 'gradient'])
