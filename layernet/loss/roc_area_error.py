import numpy
from scipy.integrate import trapezoid
from scipy.special import expit
from sklearn.metrics import roc_curve

from layernet.core.exception import ConfigurationError


# Scale of the output differences in the smooth surrogate
DEFAULT_SMOOTHING = 0.1


class RocAreaError(object):
    """ Error term for binary classification equal to one minus the area
    under the receiver operating characteristic (ROC) curve.

    The area itself is piecewise constant in the outputs, so gradients
    are taken from a smooth Wilcoxon-Mann-Whitney surrogate: the mean over
    all (positive, negative) pairs of `expit((y_pos - y_neg) / smoothing)`.
    """

    def __init__(self, multilayer_perceptron=None,
                 smoothing=DEFAULT_SMOOTHING):
        """
        Parameters
        ----------
        multilayer_perceptron: MultilayerPerceptron, default=None
            A network with a single output, the score of the positive
            class.

        smoothing: float, default=0.1
            Scale of the output differences in the smooth surrogate.
            Smaller values approach the exact area.
        """
        if smoothing <= 0:
            msg = "smoothing ({}) must be positive"
            raise ConfigurationError(msg.format(smoothing))

        self.multilayer_perceptron = multilayer_perceptron
        self.smoothing = smoothing

    def check(self):
        """ Raises a ConfigurationError unless a network with exactly one
        output is attached
        """
        if self.multilayer_perceptron is None:
            raise ConfigurationError("No multilayer perceptron is attached")

        outputs_number = self.multilayer_perceptron.get_outputs_number()

        if outputs_number != 1:
            msg = ("The ROC area error needs exactly one output but the "
                   "network has {}")
            raise ConfigurationError(msg.format(outputs_number))

    def _validate_targets(self, targets, samples_number):
        targets = numpy.asarray(targets, dtype=float).ravel()

        if targets.shape[0] != samples_number:
            msg = "Got {} targets for {} samples"
            raise ConfigurationError(msg.format(targets.shape[0],
                                                samples_number))

        if not numpy.isin(targets, (0.0, 1.0)).all():
            raise ConfigurationError("Targets must be binary (0 or 1)")

        if targets.min() == targets.max():
            msg = "Targets must contain both classes"
            raise ConfigurationError(msg)

        return targets.astype(bool)

    def _validate_outputs(self, outputs):
        outputs = numpy.asarray(outputs, dtype=float)

        if outputs.ndim == 2 and outputs.shape[1] != 1:
            msg = "Outputs should have one column, got shape {}"
            raise ConfigurationError(msg.format(outputs.shape))

        return outputs.ravel()

    def calculate_error(self, inputs, targets):
        """ One minus the area under the ROC curve of the network outputs

        Parameters
        ----------
        inputs: ndarray, shape=(samples, inputs_number)

        targets: ndarray, shape=(samples,) or (samples, 1)
            Binary class labels.
        """
        self.check()

        outputs = self._validate_outputs(
            self.multilayer_perceptron.calculate_outputs(inputs))
        targets = self._validate_targets(targets, outputs.shape[0])

        false_positive_rate, true_positive_rate, _ = roc_curve(
            targets, outputs)

        return 1.0 - trapezoid(true_positive_rate, false_positive_rate)

    def _pairwise_sigmoid(self, outputs, targets):
        outputs = self._validate_outputs(outputs)
        targets = self._validate_targets(targets, outputs.shape[0])

        differences = (outputs[targets][:, None] -
                       outputs[~targets][None, :]) / self.smoothing

        return expit(differences), targets

    def calculate_smooth_error(self, outputs, targets):
        """ One minus the smooth surrogate of the area under the curve """
        sigmoid, _ = self._pairwise_sigmoid(outputs, targets)
        return 1.0 - sigmoid.mean()

    def calculate_output_gradient(self, outputs, targets):
        """ Derivative of `calculate_smooth_error` with respect to the
        outputs, in the shape of `outputs`
        """
        sigmoid, targets = self._pairwise_sigmoid(outputs, targets)

        pairs_number = sigmoid.size
        pair_derivatives = (sigmoid * (1.0 - sigmoid) /
                            (self.smoothing * pairs_number))

        gradient = numpy.zeros(targets.shape[0])
        gradient[targets] = -pair_derivatives.sum(axis=1)
        gradient[~targets] = pair_derivatives.sum(axis=0)

        return gradient.reshape(numpy.shape(outputs))

    def calculate_gradient(self, inputs, targets):
        """ Gradient of the smooth error with respect to the flat parameter
        vector of the network
        """
        self.check()

        forward_propagation = self.multilayer_perceptron.forward_propagate(
            inputs)
        output_delta = self.calculate_output_gradient(
            forward_propagation.outputs, targets)

        back_propagation = self.multilayer_perceptron.calculate_error_gradient(
            forward_propagation, output_delta)

        return back_propagation.gradient
