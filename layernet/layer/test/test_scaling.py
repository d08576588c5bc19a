import unittest

import numpy

from layernet.core.exception import ConfigurationError, StructuralError
from layernet.layer.scaling import (
    Descriptives,
    ScalingLayer,
    ScalingMethod,
    UnscalingLayer,
    UnscalingMethod,
)


class TestUnscalingLayer(unittest.TestCase):

    def test_default_descriptives(self):

        layer = UnscalingLayer(neurons_number=1)
        descriptives = layer.get_descriptives()

        self.assertEqual(len(descriptives), 1)
        self.assertEqual(descriptives[0], Descriptives(-1., 1., 0., 1.))
        self.assertEqual(layer.get_descriptives_matrix().shape, (1, 4))

        layer.set_descriptives([Descriptives(1, 1, 1, 0),
                                Descriptives(2, 2, 2, 0)])

        matrix = layer.get_descriptives_matrix()
        self.assertEqual(matrix.shape, (2, 4))
        self.assertEqual(matrix[0, 0], 1)
        self.assertEqual(matrix[0, 2], 1)
        self.assertEqual(matrix[1, 1], 2)
        self.assertEqual(matrix[1, 3], 0)
        self.assertEqual(layer.get_inputs_number(), 2)
        self.assertEqual(layer.get_neurons_number(), 2)

    def test_statistics_getters(self):

        layer = UnscalingLayer(neurons_number=2)
        layer.set_minimum(0, 1)
        layer.set_maximum(1, -1)
        layer.set_mean(0, 1)
        layer.set_standard_deviation(1, -1)

        numpy.testing.assert_array_equal(layer.get_minimums(), [1, -1])
        numpy.testing.assert_array_equal(layer.get_maximums(), [1, -1])
        numpy.testing.assert_array_equal(layer.get_means(), [1, 0])
        numpy.testing.assert_array_equal(
            layer.get_standard_deviations(), [1, -1])

        with self.assertRaises(ConfigurationError):
            layer.set_mean(2, 0.)

    def test_unscaling_method(self):

        layer = UnscalingLayer()

        layer.set_unscaling_method('NoUnscaling')
        self.assertEqual(layer.get_unscaling_method(), 0)
        layer.set_unscaling_method(UnscalingMethod.MinimumMaximum)
        self.assertEqual(layer.unscaling_method, 1)
        layer.set_unscaling_method(2)
        self.assertIs(layer.get_unscaling_method(),
                      UnscalingMethod.MeanStandardDeviation)
        layer.set_unscaling_method('Logarithmic')
        self.assertEqual(layer.get_unscaling_method(), 3)

        with self.assertRaises(ConfigurationError):
            layer.set_unscaling_method('StandardDeviation')

    def test_calculate_outputs_no_unscaling(self):

        layer = UnscalingLayer(
            neurons_number=3, unscaling_method='NoUnscaling')
        inputs = numpy.array([[0.0, 0.3, -7.0]])

        numpy.testing.assert_array_equal(
            layer.calculate_outputs(inputs), inputs)

    def test_calculate_outputs_minimum_maximum(self):

        layer = UnscalingLayer(neurons_number=1)
        inputs = numpy.array([[0.25]])
        numpy.testing.assert_allclose(layer.calculate_outputs(inputs), inputs)

        layer.set_descriptives([[-1000, 1000, 0, 0], [-100, 100, 0, 0]])
        outputs = layer.calculate_outputs(numpy.array([[0.1, 0.0]]))

        self.assertEqual(outputs.shape, (1, 2))
        self.assertAlmostEqual(outputs[0, 0], 100.0, places=9)
        self.assertAlmostEqual(outputs[0, 1], 0.0, places=9)

    def test_calculate_outputs_mean_standard_deviation(self):

        layer = UnscalingLayer(
            neurons_number=1, unscaling_method='MeanStandardDeviation')
        inputs = numpy.array([[0.25]])
        numpy.testing.assert_allclose(layer.calculate_outputs(inputs), inputs)

        layer.set_descriptives([[-1, 1, -1, -2], [-1, 1, 2, 3]])
        outputs = layer.calculate_outputs(numpy.array([[-1.0, 1.0]]))

        numpy.testing.assert_allclose(outputs, [[1.0, 5.0]])

    def test_calculate_outputs_logarithmic(self):

        layer = UnscalingLayer(
            descriptives=[[-1, 1, -1, 2], [-1, 1, 1, 4]],
            unscaling_method='Logarithmic')

        outputs = layer.calculate_outputs(numpy.ones((1, 2)))

        numpy.testing.assert_allclose(outputs, numpy.full((1, 2), numpy.e))

    def test_zero_standard_deviation_acts_as_one(self):

        layer = UnscalingLayer(
            descriptives=[[0, 0, 3, 0]],
            unscaling_method='MeanStandardDeviation')

        outputs = layer.calculate_outputs(numpy.array([[2.0]]))
        self.assertEqual(outputs[0, 0], 5.0)

    def test_jacobian_and_hessian_form(self):

        layer = UnscalingLayer(
            descriptives=[[-1, 2, 0, 1], [0, 3, 0, 1]],
            unscaling_method='Logarithmic')
        input_vector = numpy.array([0.3, -0.2])

        jacobian = layer.calculate_jacobian(input_vector)
        hessian = layer.calculate_hessian_form(input_vector)

        h = 1e-6
        for j in range(2):
            step = h * numpy.eye(2)[j]
            numerical = (layer.calculate_outputs((input_vector+step)[None]) -
                         layer.calculate_outputs((input_vector-step)[None])
                         )[0] / (2*h)
            numpy.testing.assert_allclose(jacobian[:, j], numerical,
                                          atol=1e-6)

            numerical = (layer.calculate_jacobian(input_vector+step) -
                         layer.calculate_jacobian(input_vector-step)
                         ) / (2*h)
            numpy.testing.assert_allclose(hessian[:, :, j], numerical,
                                          atol=1e-5)

    def test_structure(self):

        layer = UnscalingLayer(descriptives=[[0, 1, 0, 1], [0, 2, 0, 1]])

        layer.insert_neuron()
        self.assertEqual(layer.get_neurons_number(), 3)
        self.assertEqual(layer.get_descriptives()[2], Descriptives())

        layer.delete_input(0)
        numpy.testing.assert_array_equal(layer.get_maximums(), [2, 1])

        with self.assertRaises(StructuralError):
            layer.delete_neuron(2)

        self.assertEqual(layer.get_parameters_number(), 0)
        self.assertEqual(layer.get_parameters().shape, (0,))


class TestScalingLayer(unittest.TestCase):

    def test_calculate_outputs(self):

        descriptives = [[0, 10, 5, 2], [-4, 4, 1, 4]]
        inputs = numpy.array([[2.5, 2.0], [10.0, -4.0]])

        layer = ScalingLayer(descriptives=descriptives)
        numpy.testing.assert_allclose(
            layer.calculate_outputs(inputs), [[-0.5, 0.5], [1.0, -1.0]])

        layer.set_scaling_method('MeanStandardDeviation')
        numpy.testing.assert_allclose(
            layer.calculate_outputs(inputs), [[-1.25, 0.25], [2.5, -1.25]])

        layer.set_scaling_method(ScalingMethod.StandardDeviation)
        numpy.testing.assert_allclose(
            layer.calculate_outputs(inputs), [[1.25, 0.5], [5.0, -1.0]])

        layer.set_scaling_method('NoScaling')
        numpy.testing.assert_array_equal(
            layer.calculate_outputs(inputs), inputs)

    def test_logarithmic(self):

        layer = ScalingLayer(descriptives=[[0, 2, 0, 1]],
                             scaling_method='Logarithmic')

        outputs = layer.calculate_outputs(numpy.array([[numpy.e]]))
        self.assertAlmostEqual(outputs[0, 0], 0.0)

        # Non-positive values are clamped to a small positive floor
        outputs = layer.calculate_outputs(numpy.array([[-1.0], [0.0]]))
        self.assertTrue(numpy.isfinite(outputs).all())
        self.assertEqual(outputs[0, 0], outputs[1, 0])

    def test_degenerate_statistics(self):

        layer = ScalingLayer(descriptives=[[3, 3, 3, 0]])
        inputs = numpy.array([[7.0]])

        # A constant variable passes through unscaled
        numpy.testing.assert_array_equal(
            layer.calculate_outputs(inputs), inputs)

        layer.set_scaling_method('MeanStandardDeviation')
        numpy.testing.assert_array_equal(
            layer.calculate_outputs(inputs), [[4.0]])

    def test_error_gradient(self):

        layer = ScalingLayer(descriptives=[[0, 10, 5, 2], [-4, 4, 1, 4]])
        inputs = numpy.array([[2.5, 2.0], [10.0, -4.0]])
        delta = numpy.array([[1.0, -2.0], [0.5, 3.0]])

        back_propagation = layer.calculate_error_gradient(
            layer.forward_propagate(inputs), delta)

        self.assertEqual(len(back_propagation.gradients), 0)
        numpy.testing.assert_allclose(
            back_propagation.combinations_delta,
            delta * numpy.array([0.2, 0.25]))

    def test_wrong_inputs(self):

        layer = ScalingLayer(neurons_number=2)

        with self.assertRaises(ConfigurationError):
            layer.calculate_outputs(numpy.zeros((1, 3)))

        with self.assertRaises(ConfigurationError):
            layer.set_descriptives(numpy.zeros((2, 3)))

        with self.assertRaises(ConfigurationError):
            layer.set_scaling_method('Cubic')

    def test_set_item_descriptives(self):

        layer = ScalingLayer(neurons_number=2)

        layer.set_item_descriptives(1, Descriptives(0, 8, 4, 2))
        numpy.testing.assert_array_equal(
            layer.get_descriptives_matrix(), [[-1, 1, 0, 1], [0, 8, 4, 2]])

        with self.assertRaises(ConfigurationError):
            layer.set_item_descriptives(0, [0, 8, 4])

        with self.assertRaises(ConfigurationError):
            layer.set_item_descriptives(0, [[0, 8, 4, 2]])

        with self.assertRaises(ConfigurationError):
            layer.set_item_descriptives(2, [0, 8, 4, 2])

        numpy.testing.assert_array_equal(layer.get_descriptives()[0],
                                         Descriptives())
