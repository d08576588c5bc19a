"""
Long short-term memory layer with back propagation through time.

Each sample (row) of a batch is an independent sequence of `timesteps`
input vectors, flattened timestep-major. For every timestep t::

    forget_t = recurrent_activation(x_t W_f^T + h_{t-1} R_f^T + b_f)
    input_t  = recurrent_activation(x_t W_i^T + h_{t-1} R_i^T + b_i)
    state_t  = activation(x_t W_s^T + h_{t-1} R_s^T + b_s)
    output_t = recurrent_activation(x_t W_o^T + h_{t-1} R_o^T + b_o)

    c_t = forget_t * c_{t-1} + input_t * state_t
    h_t = output_t * activation(c_t)

where W_g are (neurons, inputs) weights, R_g are (neurons, neurons)
recurrent weights and b_g are biases. The hidden and cell states start
from the layer's initial values (zero by default) for every batch unless
the layer is stateful or a state is passed explicitly.
"""
from collections import OrderedDict
import logging

import numpy

from layernet.activation import (
    calculate_activations_derivatives,
    get_activation_function,
)
from layernet.core.config import (
    LongShortTermMemoryConfig,
    validate_long_short_term_memory_config,
    validate_timesteps,
)
from layernet.core.exception import ConfigurationError, StructuralError
from layernet.layer.layer_base import (
    glorot_uniform, Layer, LayerType, new_weights)
from layernet.layer.propagation import (
    BackPropagation, RecurrentForwardPropagation, RecurrentState)


_logger_name = __name__.rsplit('.', 1)[-1]
logger = logging.getLogger(_logger_name)

GATES = ('forget', 'input', 'state', 'output')

# Gates that use the recurrent activation function
RECURRENT_GATES = ('forget', 'input', 'output')


class LongShortTermMemoryLayer(Layer):
    """ A long short-term memory layer.

    Parameters are stored per gate in the attributes `<gate>_biases`,
    `<gate>_weights` and `<gate>_recurrent_weights` for gate in
    forget, input, state and output.
    """
    layer_type = LayerType.LongShortTermMemory

    def __init__(self, inputs_number=0, neurons_number=0, timesteps=1,
                 activation_function='HyperbolicTangent',
                 recurrent_activation_function='HardSigmoid',
                 stateful=False, random_state=None):
        """
        Parameters
        ----------
        inputs_number: int
            Number of input features per timestep.

        neurons_number: int
            Number of neurons, i.e., the hidden state size.

        timesteps: int, default=1
            Number of timesteps in each input sequence.

        activation_function: ActivationFunction or str
            Activation of the state gate and of the cell state.

        recurrent_activation_function: ActivationFunction or str
            Activation of the forget, input and output gates.

        stateful: bool, default=False
            If True, the final state of each forward propagation is kept
            and used as the initial state of the next one, until
            `reset_states` is called.

        random_state: numpy.random.RandomState, default=None
            Provide a RandomState object for reproducible results.
        """
        config = LongShortTermMemoryConfig(
            inputs_number=inputs_number,
            neurons_number=neurons_number,
            timesteps=timesteps,
            activation_function=activation_function,
            recurrent_activation_function=recurrent_activation_function)

        self.random_state = (numpy.random.RandomState()
                             if random_state is None else random_state)
        self.stateful = stateful

        self.set(config)

    @classmethod
    def from_config(cls, config, stateful=False, random_state=None):
        layer = cls(random_state=random_state, stateful=stateful)
        layer.set(config)
        return layer

    def set(self, config):
        """ (Re)build the layer from a LongShortTermMemoryConfig.
        Weights are Glorot uniform and biases are zero.
        """
        config = validate_long_short_term_memory_config(config)

        inputs_number = config.inputs_number
        neurons_number = config.neurons_number

        self.timesteps = config.timesteps
        self.activation_function = config.activation_function
        self.recurrent_activation_function = (
            config.recurrent_activation_function)

        self.initial_hidden_state = numpy.full(
            neurons_number, config.initial_hidden_state)
        self.initial_cell_state = numpy.full(
            neurons_number, config.initial_cell_state)

        for gate in GATES:
            setattr(self, gate + '_biases', numpy.zeros(neurons_number))
            setattr(self, gate + '_weights',
                    numpy.zeros((neurons_number, inputs_number)))
            setattr(self, gate + '_recurrent_weights',
                    numpy.zeros((neurons_number, neurons_number)))

        self.set_synaptic_weights_glorot()
        self.reset_states()

    def get_config(self):
        return LongShortTermMemoryConfig(
            inputs_number=self.get_inputs_number(),
            neurons_number=self.get_neurons_number(),
            timesteps=self.timesteps,
            activation_function=self.activation_function,
            recurrent_activation_function=self.recurrent_activation_function,
            initial_hidden_state=(float(self.initial_hidden_state[0])
                                  if self.initial_hidden_state.size else 0.0),
            initial_cell_state=(float(self.initial_cell_state[0])
                                if self.initial_cell_state.size else 0.0))

    def get_inputs_number(self):
        return self.forget_weights.shape[1]

    def get_neurons_number(self):
        return self.forget_weights.shape[0]

    def get_input_width(self):
        return self.timesteps * self.get_inputs_number()

    def set_timesteps(self, timesteps):
        self.timesteps = validate_timesteps(timesteps)
        self.reset_states()

    def set_activation_function(self, activation_function):
        self.activation_function = get_activation_function(
            activation_function)

    def set_recurrent_activation_function(self, activation_function):
        self.recurrent_activation_function = get_activation_function(
            activation_function)

    def _gate_activation_function(self, gate):
        if gate in RECURRENT_GATES:
            return self.recurrent_activation_function
        return self.activation_function

    ###########################################################
    # Parameters

    def parameter_groups(self):
        groups = OrderedDict()
        for kind in ('biases', 'weights', 'recurrent_weights'):
            for gate in GATES:
                name = '{}_{}'.format(gate, kind)
                groups[name] = getattr(self, name)
        return groups

    def _check_gate(self, gate):
        if gate not in GATES:
            msg = "Unknown gate {}; should be one of {}"
            raise ConfigurationError(msg.format(gate, GATES))

    def _set_group(self, name, values):
        current = getattr(self, name)
        values = numpy.asarray(values, dtype=float)
        if values.shape != current.shape:
            msg = "{} shape {} should be {}"
            raise ConfigurationError(
                msg.format(name, values.shape, current.shape))
        setattr(self, name, values.copy())

    def get_biases(self, gate):
        self._check_gate(gate)
        return getattr(self, gate + '_biases').copy()

    def get_weights(self, gate):
        self._check_gate(gate)
        return getattr(self, gate + '_weights').copy()

    def get_recurrent_weights(self, gate):
        self._check_gate(gate)
        return getattr(self, gate + '_recurrent_weights').copy()

    def set_biases(self, gate, biases):
        self._check_gate(gate)
        self._set_group(gate + '_biases', biases)

    def set_weights(self, gate, weights):
        self._check_gate(gate)
        self._set_group(gate + '_weights', weights)

    def set_recurrent_weights(self, gate, recurrent_weights):
        self._check_gate(gate)
        self._set_group(gate + '_recurrent_weights', recurrent_weights)

    def initialize_biases(self, value, gates=GATES):
        for gate in gates:
            self._check_gate(gate)
            getattr(self, gate + '_biases').fill(value)

    def initialize_weights(self, value, gates=GATES):
        for gate in gates:
            self._check_gate(gate)
            getattr(self, gate + '_weights').fill(value)

    def initialize_recurrent_weights(self, value, gates=GATES):
        for gate in gates:
            self._check_gate(gate)
            getattr(self, gate + '_recurrent_weights').fill(value)

    def initialize_hidden_states(self, value):
        self.initial_hidden_state = numpy.full(
            self.get_neurons_number(), float(value))
        self.reset_states()

    def initialize_cell_states(self, value):
        self.initial_cell_state = numpy.full(
            self.get_neurons_number(), float(value))
        self.reset_states()

    def set_parameters_random(self, minimum=-1.0, maximum=1.0):
        for group in self.parameter_groups().values():
            group[...] = self.random_state.uniform(
                minimum, maximum, size=group.shape)

    def set_synaptic_weights_glorot(self):
        inputs_number = self.get_inputs_number()
        neurons_number = self.get_neurons_number()

        for gate in GATES:
            weights = getattr(self, gate + '_weights')
            weights[...] = glorot_uniform(
                self.random_state, weights.shape,
                fan_in=inputs_number, fan_out=neurons_number)

            recurrent_weights = getattr(self, gate + '_recurrent_weights')
            recurrent_weights[...] = glorot_uniform(
                self.random_state, recurrent_weights.shape,
                fan_in=neurons_number, fan_out=neurons_number)

    ###########################################################
    # Recurrent state

    def get_initial_state(self, batch_size):
        """ A fresh RecurrentState for `batch_size` independent sequences """
        return RecurrentState(
            hidden=numpy.tile(self.initial_hidden_state, (batch_size, 1)),
            cell=numpy.tile(self.initial_cell_state, (batch_size, 1)))

    def reset_states(self):
        """ Forget the state kept between calls by a stateful layer """
        self.state = None

    def _validate_state(self, state, batch_size):
        expected = (batch_size, self.get_neurons_number())

        if not isinstance(state, RecurrentState):
            msg = "state ({}) is not a RecurrentState"
            raise ConfigurationError(msg.format(type(state)))

        if state.hidden.shape != expected or state.cell.shape != expected:
            msg = "state arrays have shapes {} and {} but should be {}"
            raise ConfigurationError(msg.format(
                state.hidden.shape, state.cell.shape, expected))

        return RecurrentState(
            hidden=numpy.array(state.hidden, dtype=float),
            cell=numpy.array(state.cell, dtype=float))

    ###########################################################
    # Combinations and activations

    def calculate_gate_combinations(self, gate, inputs, hidden_states):
        """ Combinations of `gate` for one timestep

        Parameters
        ----------
        gate: str
            One of 'forget', 'input', 'state', 'output'.

        inputs: ndarray, shape=(batch, inputs)
            The external inputs at the current timestep.

        hidden_states: ndarray, shape=(batch, neurons)
            The hidden states from the previous timestep.
        """
        self._check_gate(gate)
        return (numpy.dot(inputs, getattr(self, gate + '_weights').T) +
                numpy.dot(hidden_states,
                          getattr(self, gate + '_recurrent_weights').T) +
                getattr(self, gate + '_biases'))

    def calculate_forget_combinations(self, inputs, hidden_states):
        return self.calculate_gate_combinations(
            'forget', inputs, hidden_states)

    def calculate_input_combinations(self, inputs, hidden_states):
        return self.calculate_gate_combinations(
            'input', inputs, hidden_states)

    def calculate_state_combinations(self, inputs, hidden_states):
        return self.calculate_gate_combinations(
            'state', inputs, hidden_states)

    def calculate_output_combinations(self, inputs, hidden_states):
        return self.calculate_gate_combinations(
            'output', inputs, hidden_states)

    ###########################################################
    # Forward propagation

    def _reshape_inputs(self, inputs):
        """ Returns inputs as a (batch, timesteps, inputs) array """
        inputs = numpy.asarray(inputs, dtype=float)
        inputs_number = self.get_inputs_number()

        if inputs.ndim == 3:
            if inputs.shape[1:] != (self.timesteps, inputs_number):
                msg = ("Inputs have shape {} but should be (batch, {}, {})")
                raise ConfigurationError(msg.format(
                    inputs.shape, self.timesteps, inputs_number))
            return inputs

        if inputs.ndim != 2:
            msg = ("Inputs must be (batch, timesteps*inputs) or "
                   "(batch, timesteps, inputs), got shape {}")
            raise ConfigurationError(msg.format(inputs.shape))

        if inputs.shape[1] != self.get_input_width():
            msg = ("Inputs have {} columns but {} timesteps of {} inputs "
                   "need {}")
            raise ConfigurationError(msg.format(
                inputs.shape[1], self.timesteps, inputs_number,
                self.get_input_width()))

        return inputs.reshape(inputs.shape[0], self.timesteps, inputs_number)

    def _forward(self, inputs, initial_state, input_shape,
                 return_sequences):
        """ Runs the timestep loop from `initial_state` """
        batch_size = inputs.shape[0]
        shape = (self.timesteps, batch_size, self.get_neurons_number())

        combinations = {gate: numpy.empty(shape) for gate in GATES}
        activations = {gate: numpy.empty(shape) for gate in GATES}
        derivatives = {gate: numpy.empty(shape) for gate in GATES}

        cell_states = numpy.empty(shape)
        cell_activations = numpy.empty(shape)
        cell_derivatives = numpy.empty(shape)
        hidden_states = numpy.empty(shape)

        hidden = initial_state.hidden
        cell = initial_state.cell

        for t in range(self.timesteps):
            inputs_t = inputs[:, t, :]

            for gate in GATES:
                combinations[gate][t] = self.calculate_gate_combinations(
                    gate, inputs_t, hidden)
                activations[gate][t], derivatives[gate][t] = (
                    calculate_activations_derivatives(
                        combinations[gate][t],
                        self._gate_activation_function(gate)))

            cell = (activations['forget'][t] * cell +
                    activations['input'][t] * activations['state'][t])

            cell_activations[t], cell_derivatives[t] = (
                calculate_activations_derivatives(
                    cell, self.activation_function))

            hidden = activations['output'][t] * cell_activations[t]

            cell_states[t] = cell
            hidden_states[t] = hidden

        final_state = RecurrentState(hidden=hidden.copy(), cell=cell.copy())

        if return_sequences:
            outputs = hidden_states.transpose(1, 0, 2).copy()
        else:
            outputs = hidden.copy()

        return RecurrentForwardPropagation(
            inputs=inputs,
            input_shape=input_shape,
            initial_state=initial_state,
            combinations=combinations,
            activations=activations,
            activations_derivatives=derivatives,
            cell_states=cell_states,
            cell_activations=cell_activations,
            cell_activations_derivatives=cell_derivatives,
            hidden_states=hidden_states,
            outputs=outputs,
            final_state=final_state,
            return_sequences=return_sequences)

    def forward_propagate(self, inputs, state=None, return_sequences=False):
        """
        Parameters
        ----------
        inputs: ndarray, shape=(batch, timesteps*inputs) or
                (batch, timesteps, inputs)
            Each row is an independent sequence. In the 2d form, the
            features of timestep t are the columns
            [t*inputs, (t+1)*inputs).

        state: RecurrentState, default=None
            The initial hidden and cell states, each (batch, neurons). If
            None, a stateful layer continues from its kept state (when the
            batch size agrees) and otherwise the initial values are used.

        return_sequences: bool, default=False
            If False, the outputs are the final hidden states,
            shape (batch, neurons). If True, they are the hidden states of
            every timestep, shape (batch, timesteps, neurons).

        Returns
        -------
        forward_propagation: RecurrentForwardPropagation
        """
        input_shape = numpy.shape(inputs)
        inputs = self._reshape_inputs(inputs)
        batch_size = inputs.shape[0]

        # An explicit state is owned by the caller and is never kept
        keep_state = self.stateful and state is None

        if state is not None:
            state = self._validate_state(state, batch_size)
        elif (keep_state and self.state is not None and
                self.state.hidden.shape[0] == batch_size):
            state = self.state
        else:
            state = self.get_initial_state(batch_size)

        forward_propagation = self._forward(
            inputs, state, input_shape, return_sequences)

        if keep_state:
            self.state = forward_propagation.final_state

        return forward_propagation

    def calculate_outputs(self, inputs, state=None, return_sequences=False):
        return self.forward_propagate(
            inputs, state=state, return_sequences=return_sequences).outputs

    ###########################################################
    # Back propagation through time

    def _validate_recurrent_delta(self, forward_propagation, delta):
        delta = numpy.asarray(delta, dtype=float)
        outputs_shape = forward_propagation.outputs.shape

        if delta.shape != outputs_shape:
            msg = "Delta has shape {} but the outputs have shape {}"
            raise ConfigurationError(msg.format(delta.shape, outputs_shape))

        if forward_propagation.return_sequences:
            # (batch, timesteps, neurons) -> (timesteps, batch, neurons)
            return delta, delta.transpose(1, 0, 2)

        # Only the last timestep is observed
        timesteps_delta = numpy.zeros((self.timesteps,) + delta.shape)
        timesteps_delta[-1] = delta

        return delta, timesteps_delta

    def calculate_error_gradient(self, forward_propagation, delta):
        """ Back propagation through time.

        Parameters
        ----------
        forward_propagation: RecurrentForwardPropagation
            The record from `forward_propagate`.

        delta: ndarray
            The derivative of the error with respect to the outputs, with
            the same shape as `forward_propagation.outputs`.

        Returns
        -------
        back_propagation: BackPropagation
            `gradients` holds the error gradient of every parameter group,
            summed over timesteps and samples. `input_delta` is the
            derivative of the error with respect to the inputs, in the
            shape the inputs were given.
        """
        fp = forward_propagation
        delta, timesteps_delta = self._validate_recurrent_delta(fp, delta)

        inputs = fp.inputs
        batch_size = inputs.shape[0]
        neurons_number = self.get_neurons_number()

        gradients = OrderedDict(
            (name, numpy.zeros_like(group))
            for name, group in self.parameter_groups().items())

        combinations_delta = {
            gate: numpy.zeros_like(fp.combinations[gate]) for gate in GATES}
        input_delta = numpy.zeros_like(inputs)

        # Error derivatives flowing back from timestep t+1
        hidden_delta_next = numpy.zeros((batch_size, neurons_number))
        cell_delta_next = numpy.zeros((batch_size, neurons_number))

        for t in reversed(range(self.timesteps)):

            if t > 0:
                previous_hidden = fp.hidden_states[t-1]
                previous_cell = fp.cell_states[t-1]
            else:
                previous_hidden = fp.initial_state.hidden
                previous_cell = fp.initial_state.cell

            hidden_delta = timesteps_delta[t] + hidden_delta_next

            cell_delta = (
                cell_delta_next +
                hidden_delta * fp.activations['output'][t] *
                fp.cell_activations_derivatives[t])

            activations_delta = {
                'forget': cell_delta * previous_cell,
                'input': cell_delta * fp.activations['state'][t],
                'state': cell_delta * fp.activations['input'][t],
                'output': hidden_delta * fp.cell_activations[t],
            }

            hidden_delta_next = numpy.zeros((batch_size, neurons_number))

            for gate in GATES:
                gate_delta = (activations_delta[gate] *
                              fp.activations_derivatives[gate][t])
                combinations_delta[gate][t] = gate_delta

                gradients[gate + '_biases'] += gate_delta.sum(axis=0)
                gradients[gate + '_weights'] += numpy.dot(
                    gate_delta.T, inputs[:, t, :])
                gradients[gate + '_recurrent_weights'] += numpy.dot(
                    gate_delta.T, previous_hidden)

                input_delta[:, t, :] += numpy.dot(
                    gate_delta, getattr(self, gate + '_weights'))
                hidden_delta_next += numpy.dot(
                    gate_delta, getattr(self, gate + '_recurrent_weights'))

            cell_delta_next = cell_delta * fp.activations['forget'][t]

        return BackPropagation(
            delta=delta,
            combinations_delta=combinations_delta,
            gradients=gradients,
            input_delta=input_delta.reshape(fp.input_shape))

    ###########################################################
    # Jacobian and Hessian form

    def calculate_jacobian(self, input_vector):
        """ Derivatives of the final hidden state with respect to the
        flattened input sequence of one sample, shape
        (neurons, timesteps*inputs). The initial values are used for the
        state.
        """
        input_vector = self._validate_input_vector(input_vector)
        neurons_number = self.get_neurons_number()

        # One copy of the sample per output neuron, each back propagating
        # a unit delta on its own neuron.
        inputs = numpy.tile(input_vector, (neurons_number, 1))
        fp = self._forward(
            self._reshape_inputs(inputs),
            self.get_initial_state(neurons_number),
            inputs.shape, return_sequences=False)

        back_propagation = self.calculate_error_gradient(
            fp, numpy.eye(neurons_number))

        return back_propagation.input_delta

    def calculate_hessian_form(self, input_vector):
        """ Second derivatives of each final hidden state component with
        respect to the flattened input sequence, computed by central
        differences of the analytic Jacobian. Shape
        (neurons, timesteps*inputs, timesteps*inputs).
        """
        input_vector = self._validate_input_vector(input_vector)
        width = input_vector.shape[0]
        neurons_number = self.get_neurons_number()

        hessian = numpy.zeros((neurons_number, width, width))
        steps = numpy.cbrt(numpy.finfo(float).eps) * (
            1.0 + numpy.abs(input_vector))

        for j in range(width):
            forward = input_vector.copy()
            backward = input_vector.copy()
            forward[j] += steps[j]
            backward[j] -= steps[j]

            hessian[:, :, j] = (
                self.calculate_jacobian(forward) -
                self.calculate_jacobian(backward)) / (2.0 * steps[j])

        return 0.5 * (hessian + hessian.transpose(0, 2, 1))

    ###########################################################
    # Structure

    def insert_input(self, random_state=None):
        neurons_number = self.get_neurons_number()
        inputs_number = self.get_inputs_number()

        for gate in GATES:
            name = gate + '_weights'
            column = new_weights(
                random_state, (neurons_number, 1),
                fan_in=inputs_number+1, fan_out=neurons_number)
            setattr(self, name, numpy.hstack([getattr(self, name), column]))

    def delete_input(self, index):
        if not 0 <= index < self.get_inputs_number():
            msg = "Input index {} out of range for {} inputs"
            raise StructuralError(msg.format(index, self.get_inputs_number()))

        for gate in GATES:
            name = gate + '_weights'
            setattr(self, name, numpy.delete(getattr(self, name), index,
                                             axis=1))

    def insert_neuron(self, random_state=None):
        neurons_number = self.get_neurons_number()
        inputs_number = self.get_inputs_number()
        new_neurons_number = neurons_number + 1

        for gate in GATES:
            biases_name = gate + '_biases'
            setattr(self, biases_name,
                    numpy.append(getattr(self, biases_name), 0.0))

            weights_name = gate + '_weights'
            row = new_weights(random_state, (1, inputs_number),
                              fan_in=inputs_number,
                              fan_out=new_neurons_number)
            setattr(self, weights_name,
                    numpy.vstack([getattr(self, weights_name), row]))

            # The recurrent weights gain a row (new neuron) and a column
            # (new component of the previous hidden state)
            recurrent_name = gate + '_recurrent_weights'
            recurrent = numpy.zeros((new_neurons_number, new_neurons_number))
            recurrent[:neurons_number, :neurons_number] = getattr(
                self, recurrent_name)
            if random_state is not None:
                recurrent[-1, :] = glorot_uniform(
                    random_state, new_neurons_number, new_neurons_number,
                    new_neurons_number)
                recurrent[:-1, -1] = glorot_uniform(
                    random_state, neurons_number, new_neurons_number,
                    new_neurons_number)
            setattr(self, recurrent_name, recurrent)

        self.initial_hidden_state = numpy.append(
            self.initial_hidden_state,
            self.initial_hidden_state[0] if neurons_number else 0.0)
        self.initial_cell_state = numpy.append(
            self.initial_cell_state,
            self.initial_cell_state[0] if neurons_number else 0.0)

        self.reset_states()

    def delete_neuron(self, index):
        if not 0 <= index < self.get_neurons_number():
            msg = "Neuron index {} out of range for {} neurons"
            raise StructuralError(
                msg.format(index, self.get_neurons_number()))

        for gate in GATES:
            for kind in ('biases', 'weights'):
                name = '{}_{}'.format(gate, kind)
                setattr(self, name, numpy.delete(getattr(self, name), index,
                                                 axis=0))

            name = gate + '_recurrent_weights'
            recurrent = numpy.delete(getattr(self, name), index, axis=0)
            setattr(self, name, numpy.delete(recurrent, index, axis=1))

        self.initial_hidden_state = numpy.delete(
            self.initial_hidden_state, index)
        self.initial_cell_state = numpy.delete(self.initial_cell_state, index)

        self.reset_states()

    def __repr__(self):
        return "<{} inputs={:d}, neurons={:d}, timesteps={:d}>".format(
            self.__class__.__name__, self.get_inputs_number(),
            self.get_neurons_number(), self.timesteps)
