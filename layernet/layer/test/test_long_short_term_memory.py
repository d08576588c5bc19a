import unittest

import numpy

from layernet.activation import calculate_activations
from layernet.core.config import LongShortTermMemoryConfig
from layernet.core.exception import ConfigurationError, StructuralError
from layernet.layer.long_short_term_memory import (
    GATES, LongShortTermMemoryLayer)
from layernet.layer.propagation import RecurrentState


def make_layer(inputs_number=2, neurons_number=2, timesteps=2, seed=123,
               **kwargs):
    random_state = numpy.random.RandomState(seed)
    layer = LongShortTermMemoryLayer(
        inputs_number=inputs_number, neurons_number=neurons_number,
        timesteps=timesteps, random_state=random_state, **kwargs)
    # Small values keep the hard sigmoid gates away from their kinks
    layer.set_parameters_random(-0.5, 0.5)
    return layer, random_state


def numerical_parameters_gradient(layer, error, h=1e-6):
    parameters = layer.get_parameters()
    gradient = numpy.zeros_like(parameters)

    for i in range(parameters.shape[0]):
        forward = parameters.copy()
        backward = parameters.copy()
        forward[i] += h
        backward[i] -= h

        layer.set_parameters(forward)
        error_forward = error()
        layer.set_parameters(backward)
        error_backward = error()

        gradient[i] = (error_forward - error_backward) / (2*h)

    layer.set_parameters(parameters)

    return gradient


def assert_relative_close(test, actual, expected, tolerance=1e-2):
    scale = max(1.0, numpy.linalg.norm(expected))
    test.assertLess(numpy.linalg.norm(actual - expected) / scale, tolerance)


class TestLongShortTermMemoryLayer(unittest.TestCase):

    def test_parameters_number_and_order(self):

        layer, _ = make_layer(inputs_number=3, neurons_number=2)
        n, f = 2, 3

        self.assertEqual(layer.get_parameters_number(), 4*n*(1 + f + n))

        parameters = numpy.arange(layer.get_parameters_number(), dtype=float)
        layer.set_parameters(parameters)

        index = 0
        for gate in GATES:
            numpy.testing.assert_array_equal(
                layer.get_biases(gate), parameters[index:index+n])
            index += n
        for gate in GATES:
            numpy.testing.assert_array_equal(
                layer.get_weights(gate),
                parameters[index:index+n*f].reshape(n, f))
            index += n*f
        for gate in GATES:
            numpy.testing.assert_array_equal(
                layer.get_recurrent_weights(gate),
                parameters[index:index+n*n].reshape(n, n))
            index += n*n

    def test_parameters_round_trip(self):

        for inputs_number, neurons_number, timesteps in [
                (1, 1, 1), (2, 3, 4), (0, 2, 2), (3, 0, 1)]:
            layer, random_state = make_layer(
                inputs_number, neurons_number, timesteps)

            parameters = random_state.randn(layer.get_parameters_number())
            layer.set_parameters(parameters)

            numpy.testing.assert_array_equal(
                layer.get_parameters(), parameters)

    def test_set_parameters_at_index(self):

        layer, random_state = make_layer()
        parameters = random_state.randn(layer.get_parameters_number() + 7)

        layer.set_parameters(parameters, index=7)
        numpy.testing.assert_array_equal(
            layer.get_parameters(), parameters[7:])

        with self.assertRaises(ConfigurationError):
            layer.set_parameters(parameters, index=8)

    def test_zero_parameters_single_step(self):

        layer = LongShortTermMemoryLayer(inputs_number=1, neurons_number=1)
        layer.set_parameters_constant(0.0)

        outputs = layer.calculate_outputs(numpy.array([[0.7]]))

        # hard_sigmoid(0) * tanh(hard_sigmoid(0) * tanh(0)) = 0
        self.assertEqual(outputs.shape, (1, 1))
        self.assertEqual(outputs[0, 0], 0.0)

        layer = LongShortTermMemoryLayer(
            inputs_number=1, neurons_number=1,
            activation_function='Logistic')
        layer.set_parameters_constant(0.0)

        outputs = layer.calculate_outputs(numpy.array([[0.7]]))

        # c = hard_sigmoid(0) * logistic(0) = 0.25
        expected = 0.5 * calculate_activations(0.25, 'Logistic')
        self.assertAlmostEqual(outputs[0, 0], expected, places=14)

    def test_forward_matches_gate_equations(self):

        layer, random_state = make_layer(timesteps=3)
        inputs = random_state.uniform(-0.5, 0.5, size=(4, 3*2))

        hidden = numpy.zeros((4, 2))
        cell = numpy.zeros((4, 2))

        for t in range(3):
            x = inputs[:, 2*t:2*t+2]
            gates = {}
            for gate in GATES:
                combinations = (
                    numpy.dot(x, layer.get_weights(gate).T) +
                    numpy.dot(hidden, layer.get_recurrent_weights(gate).T) +
                    layer.get_biases(gate))
                function = ('HyperbolicTangent' if gate == 'state'
                            else 'HardSigmoid')
                gates[gate] = calculate_activations(combinations, function)

            cell = gates['forget'] * cell + gates['input'] * gates['state']
            hidden = gates['output'] * numpy.tanh(cell)

        numpy.testing.assert_allclose(
            layer.calculate_outputs(inputs), hidden, rtol=0, atol=1e-14)

    def test_three_dimensional_inputs(self):

        layer, random_state = make_layer(timesteps=3)
        inputs = random_state.uniform(-1, 1, size=(5, 3, 2))

        numpy.testing.assert_array_equal(
            layer.calculate_outputs(inputs),
            layer.calculate_outputs(inputs.reshape(5, 6)))

    def test_return_sequences(self):

        layer, random_state = make_layer(timesteps=3)
        inputs = random_state.uniform(-1, 1, size=(5, 6))

        sequences = layer.calculate_outputs(inputs, return_sequences=True)

        self.assertEqual(sequences.shape, (5, 3, 2))
        numpy.testing.assert_array_equal(
            sequences[:, -1, :], layer.calculate_outputs(inputs))

        # The first step only depends on the first timestep's inputs
        first, _ = make_layer(timesteps=1)
        first.set_parameters(layer.get_parameters())
        numpy.testing.assert_allclose(
            sequences[:, 0, :], first.calculate_outputs(inputs[:, :2]),
            rtol=0, atol=1e-14)

    def test_wrong_input_shape(self):

        layer, _ = make_layer(timesteps=3)

        with self.assertRaises(ConfigurationError):
            layer.forward_propagate(numpy.zeros((4, 5)))

        with self.assertRaises(ConfigurationError):
            layer.forward_propagate(numpy.zeros((4, 3, 3)))

        with self.assertRaises(ConfigurationError):
            layer.forward_propagate(numpy.zeros(6))

    def test_empty_layers(self):

        layer = LongShortTermMemoryLayer(inputs_number=2, neurons_number=0)
        self.assertEqual(
            layer.calculate_outputs(numpy.ones((3, 2))).shape, (3, 0))

        layer = LongShortTermMemoryLayer(
            inputs_number=0, neurons_number=2, timesteps=2)
        outputs = layer.calculate_outputs(numpy.ones((3, 0)))
        self.assertEqual(outputs.shape, (3, 2))

    def test_error_gradient_matches_finite_differences(self):

        layer, random_state = make_layer(
            inputs_number=2, neurons_number=2, timesteps=2)

        inputs = random_state.uniform(-0.5, 0.5, size=(3, 4))
        targets = random_state.randn(3, 2)

        def error():
            return 0.5 * ((layer.calculate_outputs(inputs) - targets)**2).sum()

        forward_propagation = layer.forward_propagate(inputs)
        delta = forward_propagation.outputs - targets
        back_propagation = layer.calculate_error_gradient(
            forward_propagation, delta)

        gradient = numpy.zeros(layer.get_parameters_number())
        layer.insert_gradient(back_propagation, 0, gradient)

        self.assertEqual(list(back_propagation.gradients.keys()),
                         list(layer.parameter_groups().keys()))

        numerical = numerical_parameters_gradient(layer, error)

        assert_relative_close(self, gradient, numerical)
        numpy.testing.assert_allclose(gradient, numerical, atol=1e-6)

    def test_error_gradient_with_initial_state(self):

        layer, random_state = make_layer(
            inputs_number=2, neurons_number=2, timesteps=2)
        layer.initialize_hidden_states(0.3)
        layer.initialize_cell_states(-0.2)

        inputs = random_state.uniform(-0.5, 0.5, size=(3, 4))
        weights = random_state.randn(3, 2)

        def error():
            return (layer.calculate_outputs(inputs) * weights).sum()

        back_propagation = layer.calculate_error_gradient(
            layer.forward_propagate(inputs), weights)

        gradient = numpy.zeros(layer.get_parameters_number())
        layer.insert_gradient(back_propagation, 0, gradient)

        numpy.testing.assert_allclose(
            gradient, numerical_parameters_gradient(layer, error), atol=1e-6)

    def test_sequences_error_gradient(self):

        layer, random_state = make_layer(
            inputs_number=2, neurons_number=3, timesteps=3)

        inputs = random_state.uniform(-0.5, 0.5, size=(2, 6))
        weights = random_state.randn(2, 3, 3)

        def error():
            sequences = layer.calculate_outputs(
                inputs, return_sequences=True)
            return (sequences * weights).sum()

        forward_propagation = layer.forward_propagate(
            inputs, return_sequences=True)
        back_propagation = layer.calculate_error_gradient(
            forward_propagation, weights)

        gradient = numpy.zeros(layer.get_parameters_number())
        layer.insert_gradient(back_propagation, 0, gradient)

        numpy.testing.assert_allclose(
            gradient, numerical_parameters_gradient(layer, error), atol=1e-6)

    def test_input_delta_matches_finite_differences(self):

        layer, random_state = make_layer(
            inputs_number=2, neurons_number=2, timesteps=3)

        inputs = random_state.uniform(-0.5, 0.5, size=(2, 6))
        weights = random_state.randn(2, 2)

        back_propagation = layer.calculate_error_gradient(
            layer.forward_propagate(inputs), weights)

        self.assertEqual(back_propagation.input_delta.shape, inputs.shape)

        h = 1e-6
        numerical = numpy.zeros_like(inputs)
        for index in numpy.ndindex(*inputs.shape):
            forward = inputs.copy()
            backward = inputs.copy()
            forward[index] += h
            backward[index] -= h
            numerical[index] = (
                (layer.calculate_outputs(forward) * weights).sum() -
                (layer.calculate_outputs(backward) * weights).sum()) / (2*h)

        numpy.testing.assert_allclose(
            back_propagation.input_delta, numerical, atol=1e-6)

    def test_wrong_delta_shape(self):

        layer, _ = make_layer()
        forward_propagation = layer.forward_propagate(numpy.zeros((3, 4)))

        with self.assertRaises(ConfigurationError):
            layer.calculate_error_gradient(
                forward_propagation, numpy.zeros((3, 3)))

    def test_jacobian_and_hessian_form(self):

        layer, random_state = make_layer(
            inputs_number=2, neurons_number=3, timesteps=2)
        input_vector = random_state.uniform(-0.5, 0.5, size=4)

        jacobian = layer.calculate_jacobian(input_vector)
        self.assertEqual(jacobian.shape, (3, 4))

        h = 1e-6
        numerical = numpy.zeros((3, 4))
        for j in range(4):
            forward = input_vector.copy()
            backward = input_vector.copy()
            forward[j] += h
            backward[j] -= h
            numerical[:, j] = (layer.calculate_outputs(forward[None])[0] -
                               layer.calculate_outputs(backward[None])[0]
                               ) / (2*h)

        numpy.testing.assert_allclose(jacobian, numerical, atol=1e-6)

        hessian = layer.calculate_hessian_form(input_vector)
        self.assertEqual(hessian.shape, (3, 4, 4))
        numpy.testing.assert_allclose(
            hessian, hessian.transpose(0, 2, 1), atol=1e-12)

        # Second differences of the outputs
        def outputs(x):
            return layer.calculate_outputs(x[None])[0]

        h = 1e-4
        identity = numpy.eye(4)
        for i in range(4):
            for j in range(4):
                second = (
                    outputs(input_vector + h*identity[i] + h*identity[j]) -
                    outputs(input_vector + h*identity[i] - h*identity[j]) -
                    outputs(input_vector - h*identity[i] + h*identity[j]) +
                    outputs(input_vector - h*identity[i] - h*identity[j])
                ) / (4*h*h)
                numpy.testing.assert_allclose(
                    hessian[:, i, j], second, atol=1e-4)

    def test_replay_after_reset(self):

        layer, random_state = make_layer(stateful=True)
        sequence_a = random_state.uniform(-1, 1, size=(3, 4))
        sequence_b = random_state.uniform(-1, 1, size=(3, 4))

        first = layer.calculate_outputs(sequence_a)

        # The kept state carries over into the next call
        continued = layer.calculate_outputs(sequence_a)
        self.assertFalse(numpy.allclose(first, continued))

        layer.reset_states()
        layer.calculate_outputs(sequence_b)
        layer.reset_states()

        numpy.testing.assert_array_equal(
            layer.calculate_outputs(sequence_a), first)

    def test_stateless_replay(self):

        layer, random_state = make_layer()
        sequence = random_state.uniform(-1, 1, size=(3, 4))

        first = layer.calculate_outputs(sequence)
        layer.calculate_outputs(random_state.uniform(-1, 1, size=(3, 4)))

        numpy.testing.assert_array_equal(
            layer.calculate_outputs(sequence), first)

    def test_explicit_state(self):

        layer, random_state = make_layer(timesteps=4)
        inputs = random_state.uniform(-1, 1, size=(3, 8))

        # Running the sequence in two halves, chaining the state
        whole = layer.forward_propagate(inputs)

        half, _ = make_layer(timesteps=2)
        half.set_parameters(layer.get_parameters())
        first = half.forward_propagate(inputs[:, :4])
        second = half.forward_propagate(inputs[:, 4:],
                                        state=first.final_state)

        numpy.testing.assert_allclose(
            second.outputs, whole.outputs, rtol=0, atol=1e-14)

        with self.assertRaises(ConfigurationError):
            half.forward_propagate(
                inputs[:, 4:],
                state=RecurrentState(hidden=numpy.zeros((2, 2)),
                                     cell=numpy.zeros((2, 2))))

    def test_insert_neuron_keeps_weights(self):

        layer, _ = make_layer(inputs_number=2, neurons_number=3)
        before = {name: group.copy()
                  for name, group in layer.parameter_groups().items()}

        layer.insert_neuron()

        self.assertEqual(layer.get_neurons_number(), 4)

        for gate in GATES:
            numpy.testing.assert_array_equal(
                layer.get_biases(gate)[:3], before[gate + '_biases'])
            numpy.testing.assert_array_equal(
                layer.get_weights(gate)[:3], before[gate + '_weights'])
            numpy.testing.assert_array_equal(
                layer.get_recurrent_weights(gate)[:3, :3],
                before[gate + '_recurrent_weights'])

            # New values are zero without a random state
            self.assertEqual(layer.get_biases(gate)[3], 0.0)
            self.assertTrue((layer.get_weights(gate)[3] == 0).all())
            self.assertTrue(
                (layer.get_recurrent_weights(gate)[3, :] == 0).all())
            self.assertTrue(
                (layer.get_recurrent_weights(gate)[:, 3] == 0).all())

    def test_insert_neuron_glorot(self):

        layer, random_state = make_layer(inputs_number=2, neurons_number=3)
        layer.insert_neuron(random_state=random_state)

        limit = numpy.sqrt(6.0 / 6)
        weights = layer.get_weights('forget')[3]

        self.assertTrue((numpy.abs(weights) <= limit).all())
        self.assertTrue((weights != 0).all())

    def test_insert_and_delete_input(self):

        layer, _ = make_layer(inputs_number=2, neurons_number=3)
        before = layer.get_weights('output')

        layer.insert_input()
        self.assertEqual(layer.get_inputs_number(), 3)
        numpy.testing.assert_array_equal(
            layer.get_weights('output')[:, :2], before)

        layer.delete_input(2)
        numpy.testing.assert_array_equal(layer.get_weights('output'), before)

        with self.assertRaises(StructuralError):
            layer.delete_input(2)

    def test_delete_neuron(self):

        layer, _ = make_layer(inputs_number=2, neurons_number=3)
        recurrent = layer.get_recurrent_weights('input')

        layer.delete_neuron(1)

        self.assertEqual(layer.get_neurons_number(), 2)
        numpy.testing.assert_array_equal(
            layer.get_recurrent_weights('input'),
            recurrent[numpy.ix_([0, 2], [0, 2])])
        self.assertEqual(layer.initial_hidden_state.shape, (2,))

        with self.assertRaises(StructuralError):
            layer.delete_neuron(2)

    def test_from_config(self):

        config = LongShortTermMemoryConfig(
            inputs_number=3, neurons_number=2, timesteps=4,
            activation_function='SoftSign',
            recurrent_activation_function='Logistic',
            initial_hidden_state=0.1)

        layer = LongShortTermMemoryLayer.from_config(
            config, random_state=numpy.random.RandomState(0))

        self.assertEqual(layer.get_input_width(), 12)
        self.assertEqual(layer.activation_function.name, 'SoftSign')
        self.assertEqual(layer.recurrent_activation_function.name,
                         'Logistic')
        numpy.testing.assert_array_equal(
            layer.get_initial_state(2).hidden, numpy.full((2, 2), 0.1))
        self.assertEqual(layer.get_config().timesteps, 4)

        with self.assertRaises(ConfigurationError):
            LongShortTermMemoryLayer(inputs_number=2, neurons_number=2,
                                     timesteps=0)

        with self.assertRaises(ConfigurationError):
            LongShortTermMemoryLayer(inputs_number=2.5, neurons_number=2)

    def test_set_weights_validates_shape(self):

        layer, _ = make_layer()

        with self.assertRaises(ConfigurationError):
            layer.set_weights('forget', numpy.zeros((3, 2)))

        with self.assertRaises(ConfigurationError):
            layer.set_biases('memory', numpy.zeros(2))

        layer.set_recurrent_weights('state', numpy.eye(2))
        numpy.testing.assert_array_equal(
            layer.get_recurrent_weights('state'), numpy.eye(2))
