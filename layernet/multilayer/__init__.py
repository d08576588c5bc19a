# flake8: noqa

from .multilayer_perceptron import MultilayerPerceptron
