"""
Host network for synthesized lookupnet parameters.

A plain dense ReLU stack: ``num_layers`` hidden layers of
``neurons_per_layer`` units and a linear output layer over the full token
vocabulary, followed by softmax at prediction time. Synthesized parameters
are copied in; the network owns its tensors and is frozen afterwards.
"""

import logging
from typing import List, Sequence, Tuple, Union

import numpy as np
import torch
import torch.nn as nn

from .synthesizer import Topology, synthesize
from .vocabulary import INPUT_SIZE, LookupRecord, Vocabulary

logger = logging.getLogger(__name__)

RecordLike = Union[LookupRecord, Sequence[int]]


class LookupNetwork(nn.Module):
    def __init__(self, topology: Topology):
        super().__init__()
        self.topology = topology
        widths = topology.layer_widths()
        self.hidden = nn.ModuleList(
            [nn.Linear(widths[i], widths[i + 1]) for i in range(topology.num_layers)]
        )
        self.output = nn.Linear(widths[-2], widths[-1])

    @classmethod
    def from_synthesis(cls, topology: Topology, vocabulary: Vocabulary, **kwargs) -> 'LookupNetwork':
        """Build a network and load exact weights for ``vocabulary``."""
        network = cls(topology)
        network.load_parameters(synthesize(topology, vocabulary, **kwargs))
        return network

    def layers(self) -> List[nn.Linear]:
        return list(self.hidden) + [self.output]

    def load_parameters(self, params: Sequence[Tuple[np.ndarray, np.ndarray]]) -> None:
        """
        Copy (weights, bias) pairs into the network and freeze it.

        Weights arrive as (prev_width, width); nn.Linear stores the transpose.
        """
        layers = self.layers()
        if len(params) != len(layers):
            raise ValueError(f"Expected {len(layers)} layer parameter pairs, got {len(params)}")
        with torch.no_grad():
            for layer, (weights, bias) in zip(layers, params):
                w = torch.tensor(np.asarray(weights).T, dtype=layer.weight.dtype)
                b = torch.tensor(np.asarray(bias), dtype=layer.bias.dtype)
                if w.shape != layer.weight.shape or b.shape != layer.bias.shape:
                    raise ValueError(
                        f"Parameter shape {tuple(weights.shape)}/{tuple(bias.shape)} does not fit "
                        f"layer {layer.in_features}->{layer.out_features}")
                layer.weight.copy_(w)
                layer.bias.copy_(b)
        self.requires_grad_(False)
        self.eval()
        logger.debug("Loaded %d parameter pairs", len(params))

    def forward(self, x: torch.Tensor) -> torch.Tensor:
        for layer in self.hidden:
            x = torch.relu(layer(x))
        return self.output(x)

    def hidden_activations(self, x: torch.Tensor) -> List[torch.Tensor]:
        """Post-ReLU output of every hidden layer."""
        activations = []
        with torch.no_grad():
            for layer in self.hidden:
                x = torch.relu(layer(x))
                activations.append(x)
        return activations

    def _as_batch(self, records: Sequence[RecordLike]) -> torch.Tensor:
        rows = [r.to_list() if isinstance(r, LookupRecord) else list(r) for r in records]
        batch = torch.tensor(rows, dtype=self.output.weight.dtype)
        return batch.reshape(-1, INPUT_SIZE)

    def logits(self, records: Sequence[RecordLike]) -> torch.Tensor:
        with torch.no_grad():
            return self.forward(self._as_batch(records))

    def predict_proba(self, records: Sequence[RecordLike]) -> torch.Tensor:
        return torch.softmax(self.logits(records), dim=1)

    def predict(self, records: Sequence[RecordLike]) -> List[int]:
        """Token number of the most probable output for each record."""
        return (self.predict_proba(records).argmax(dim=1) + 1).tolist()
