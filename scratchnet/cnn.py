"""
CNN (Convolutional Neural Network) Main Class
==============================================

This is the main class that ties everything together:
- Layer stacking
- Forward pass (with explicit per-layer caches)
- Backward pass (backpropagation)
- Single-sample training step
- Prediction
- Learning-rate decay per epoch

Architecture used (default CNNConfig):
    Input (1x28x28) -> Conv(16, 3x3, pad 1) -> ReLU -> MaxPool(2)
    -> Conv(32, 3x3, pad 1) -> ReLU -> MaxPool(2)
    -> Flatten (32*7*7) -> FC(128) -> ReLU -> Dropout(0.5) -> FC(10) -> Softmax
"""

import logging
from collections import namedtuple

import numpy as np

from .activations import Softmax, argmax
from .config import CNNConfig
from .errors import ShapeError, check_shape
from .layers import ConvLayer, Dropout, Flatten, FullyConnectedLayer, MaxPool, ReLULayer
from .losses import CrossEntropyLoss, softmax_cross_entropy_gradient
from .utils import augment_image, get_model_summary

logger = logging.getLogger(__name__)


class Prediction(namedtuple('Prediction', ['label', 'probabilities'])):
    """Predicted class and the full probability vector."""

    __slots__ = ()

    @property
    def confidence(self):
        """Probability of the predicted class."""
        return float(self.probabilities[self.label])


class CNN:
    """
    Convolutional Neural Network for single-channel image classification.

    Every layer owns its parameters and its own Adam optimizer; train() runs
    forward, backward and one optimizer step per trainable layer for a single
    image. All randomness (initialization, dropout) comes from one Generator
    seeded from config.seed.

    Args:
        config: CNNConfig (defaults used when None)

    Example:
        >>> from scratchnet import CNN, DigitGenerator
        >>> images, labels = DigitGenerator(seed=0).generate_balanced(100)
        >>> model = CNN()
        >>> for image, label in zip(images, labels):
        ...     loss = model.train(image, label)
        >>> model.end_epoch()
        >>> prediction = model.predict(images[0])
        >>> prediction.label, prediction.confidence
    """

    def __init__(self, config=None):
        self.config = config if config is not None else CNNConfig()
        self.rng = np.random.default_rng(self.config.seed)

        self.input_shape = tuple(self.config.input_shape)
        self.num_classes = self.config.num_classes

        # Build the network
        self.layers = self._build_network()
        self.softmax = Softmax()
        self.loss_fn = CrossEntropyLoss()

        self.epoch = 0
        self.is_training = False

        logger.info("CNN: input %s, conv %d/%d, fc %d -> %d, %d trainable parameters",
                    self.input_shape, self.config.conv1_channels, self.config.conv2_channels,
                    self.config.fc_hidden, self.num_classes, self.count_params())

    def _build_network(self):
        """
        Build the CNN architecture.

        Architecture:
            Stage 1: Conv -> ReLU -> MaxPool
            Stage 2: Conv -> ReLU -> MaxPool
            FC: Flatten -> FC(hidden) -> ReLU -> Dropout -> FC(num_classes)

        The softmax is applied by the model, not by a layer, so that its
        gradient can be fused with the cross-entropy.
        """
        cfg = self.config
        channels = self.input_shape[0]
        lr = cfg.learning_rate

        self.conv1 = ConvLayer(channels, cfg.conv1_channels, cfg.kernel_size,
                               padding=cfg.padding, learning_rate=lr, rng=self.rng)
        self.conv2 = ConvLayer(cfg.conv1_channels, cfg.conv2_channels, cfg.kernel_size,
                               padding=cfg.padding, learning_rate=lr, rng=self.rng)
        self.fc1 = FullyConnectedLayer(cfg.flatten_size, cfg.fc_hidden, learning_rate=lr, rng=self.rng)
        self.fc2 = FullyConnectedLayer(cfg.fc_hidden, cfg.num_classes, learning_rate=lr, rng=self.rng)
        self.dropout = Dropout(cfg.dropout_rate, rng=self.rng)

        return [
            self.conv1, ReLULayer(), MaxPool(cfg.pool_size),
            self.conv2, ReLULayer(), MaxPool(cfg.pool_size),
            Flatten(),
            self.fc1, ReLULayer(), self.dropout,
            self.fc2,
        ]

    @property
    def trainable_layers(self):
        return [layer for layer in self.layers if layer.trainable]

    @property
    def learning_rate(self):
        return self.conv1.learning_rate

    def count_params(self):
        return sum(param.size for layer in self.layers for param in layer.params.values())

    def _check_image(self, image):
        image = np.asarray(image, dtype=np.float64)
        check_shape('CNN input image', image, self.input_shape)
        return image

    def _forward(self, image, training):
        """
        Forward pass through every layer.

        Returns:
            probabilities: Softmax output, shape (num_classes,)
            caches: One cache per layer, in layer order
        """
        x = image
        caches = []
        for layer in self.layers:
            x, cache = layer.forward(x, training=training)
            caches.append(cache)
        return self.softmax(x), caches

    def _backward(self, grad, caches):
        """
        Backward pass from the logit gradient.

        Returns:
            List of (layer, grads) for every trainable layer
        """
        updates = []
        for layer, cache in zip(reversed(self.layers), reversed(caches)):
            grad, grads = layer.backward(grad, cache)
            if layer.trainable:
                updates.append((layer, grads))
        return updates

    def train(self, image, label):
        """
        One training step on a single image.

        Args:
            image: Input image, shape input_shape, values in [0, 1]
            label: Integer class label

        Returns:
            Cross-entropy loss of the prediction made before the update
        """
        image = self._check_image(image)
        if isinstance(label, (bool, np.bool_)) or not isinstance(label, (int, np.integer)) \
                or not 0 <= label < self.num_classes:
            raise ShapeError(f"label must be an integer in [0, {self.num_classes}), got {label!r}")

        self.is_training = True
        probabilities, caches = self._forward(image, training=True)
        loss = self.loss_fn(probabilities, int(label))

        if not np.isfinite(loss):
            logger.warning("Non-finite loss %s for label %d", loss, label)

        # Softmax + cross-entropy gradient w.r.t. the logits
        grad = softmax_cross_entropy_gradient(probabilities, int(label))

        for layer, grads in self._backward(grad, caches):
            layer.update_weights(grads)

        return loss

    def forward(self, image):
        """Inference-mode class probabilities; changes no model state."""
        probabilities, _ = self._forward(self._check_image(image), training=False)
        return probabilities

    def predict(self, image):
        """
        Classify one image (dropout disabled).

        Returns:
            Prediction(label, probabilities)
        """
        image = self._check_image(image)
        self.is_training = False
        probabilities, _ = self._forward(image, training=False)
        return Prediction(argmax(probabilities), probabilities)

    def predict_batch(self, images):
        """Predicted labels for a stack of images, shape (N,)."""
        return np.array([self.predict(image).label for image in images], dtype=int)

    def end_epoch(self):
        """
        Mark the end of an epoch.

        Every decay_every epochs the learning rate of every trainable layer is
        multiplied by decay_rate.
        """
        self.epoch += 1
        if self.epoch % self.config.decay_every == 0:
            old_lr = self.learning_rate
            for layer in self.trainable_layers:
                layer.set_learning_rate(layer.learning_rate * self.config.decay_rate)
            logger.info("Epoch %d: learning rate %.6g -> %.6g",
                        self.epoch, old_lr, self.learning_rate)

    def augment_image(self, image, rng=None):
        """Randomly augmented copy of image; draws from the model's generator by default."""
        return augment_image(image, rng if rng is not None else self.rng)

    def get_filters(self):
        """
        Copies of the convolution kernels.

        Returns:
            List of weight arrays, shape (out_channels, in_channels, k, k), one
            per ConvLayer in network order
        """
        return [layer.params['weight'].copy() for layer in self.layers
                if isinstance(layer, ConvLayer)]

    def get_feature_maps(self, image):
        """
        Outputs of every ConvLayer for one image (inference mode).

        Returns:
            List of arrays, shape (out_channels, h, w)
        """
        x = self._check_image(image)
        feature_maps = []
        for layer in self.layers:
            x, _ = layer.forward(x, training=False)
            if isinstance(layer, ConvLayer):
                feature_maps.append(x.copy())
        return feature_maps

    def summary(self):
        """Model summary as a string."""
        return get_model_summary(self.layers, title=f"CNN {self.input_shape} -> {self.num_classes} classes")

    def __repr__(self):
        return f"CNN(input_shape={self.input_shape}, num_classes={self.num_classes})"
