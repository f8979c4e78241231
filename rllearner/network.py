from __future__ import annotations

import math
from typing import Dict, List, Sequence, Tuple

import numpy as np

from .errors import ShapeMismatchError
from .utils import as_state_vector

# fixed topology between the input and the action-value head
HIDDEN_SIZES: Tuple[int, ...] = (256, 128, 64, 32)


class QNetwork:
    """
    Dense ReLU network mapping a state vector to one Q-value per action.

    Parameters are kept as a flat list [W0, b0, W1, b1, ...]; the last layer
    is linear. Training uses Adam on mean squared error against full target
    vectors, with global gradient-norm clipping.
    """

    def __init__(
        self,
        state_size: int,
        action_size: int,
        seed: int = 42,
        max_grad_norm: float = 10.0,
        beta1: float = 0.9,
        beta2: float = 0.999,
        adam_eps: float = 1e-8,
    ):
        self.state_size = int(state_size)
        self.action_size = int(action_size)
        self.max_grad_norm = float(max_grad_norm)
        self.beta1 = float(beta1)
        self.beta2 = float(beta2)
        self.adam_eps = float(adam_eps)

        self.layer_sizes = [self.state_size, *HIDDEN_SIZES, self.action_size]
        rng = np.random.default_rng(int(seed))

        self.params: List[np.ndarray] = []
        n_layers = len(self.layer_sizes) - 1
        for i in range(n_layers):
            fan_in, fan_out = self.layer_sizes[i], self.layer_sizes[i + 1]
            if i < n_layers - 1:
                # He-normal for ReLU layers
                W = rng.standard_normal((fan_in, fan_out)) * math.sqrt(2.0 / fan_in)
            else:
                # Glorot-uniform for the linear head
                limit = math.sqrt(6.0 / (fan_in + fan_out))
                W = rng.uniform(-limit, limit, size=(fan_in, fan_out))
            self.params.append(W.astype(np.float32))
            self.params.append(np.zeros((fan_out,), dtype=np.float32))

        # Adam moments
        self._t = 0
        self._m = [np.zeros_like(p) for p in self.params]
        self._v = [np.zeros_like(p) for p in self.params]

    @property
    def num_layers(self) -> int:
        return len(self.params) // 2

    def parameter_shapes(self) -> List[Tuple[int, ...]]:
        return [p.shape for p in self.params]

    # ---- forward ----

    def _as_batch(self, states) -> np.ndarray:
        S = np.asarray(states, dtype=np.float32)
        if S.ndim != 2 or S.shape[1] != self.state_size:
            raise ShapeMismatchError(f"states must have shape (batch, {self.state_size}), got {S.shape}")
        return S

    def _forward(self, S: np.ndarray) -> Tuple[List[np.ndarray], np.ndarray]:
        acts = [S]
        H = S
        last = self.num_layers - 1
        for i in range(last):
            H = np.maximum(H @ self.params[2 * i] + self.params[2 * i + 1], 0.0)
            acts.append(H)
        Q = H @ self.params[2 * last] + self.params[2 * last + 1]
        return acts, Q

    def forward(self, states) -> np.ndarray:
        _, Q = self._forward(self._as_batch(states))
        return Q

    def predict(self, state) -> np.ndarray:
        s = as_state_vector(state, self.state_size)
        return self.forward(s.reshape(1, -1))[0]

    # ---- training ----

    def train_step(self, states, targets, learning_rate: float) -> float:
        S = self._as_batch(states)
        Y = np.asarray(targets, dtype=np.float32)
        if Y.shape != (S.shape[0], self.action_size):
            raise ShapeMismatchError(f"targets must have shape ({S.shape[0]}, {self.action_size}), got {Y.shape}")

        acts, Q = self._forward(S)
        err = (Q - Y).astype(np.float32)
        loss = float(np.mean(err ** 2))

        grads: List[np.ndarray] = [None] * len(self.params)  # type: ignore[list-item]
        dZ = (2.0 / err.size) * err
        for i in reversed(range(self.num_layers)):
            grads[2 * i] = acts[i].T @ dZ
            grads[2 * i + 1] = np.sum(dZ, axis=0)
            if i > 0:
                dZ = (dZ @ self.params[2 * i].T) * (acts[i] > 0.0)

        # clip global grad norm
        grad_norm = float(math.sqrt(sum(float(np.sum(g ** 2)) for g in grads)) + 1e-8)
        if grad_norm > self.max_grad_norm:
            scale = self.max_grad_norm / grad_norm
            grads = [g * scale for g in grads]

        self._t += 1
        lr = float(learning_rate)
        bc1 = 1.0 - self.beta1 ** self._t
        bc2 = 1.0 - self.beta2 ** self._t
        for p, g, m, v in zip(self.params, grads, self._m, self._v):
            m *= self.beta1
            m += (1.0 - self.beta1) * g
            v *= self.beta2
            v += (1.0 - self.beta2) * (g * g)
            p -= (lr * (m / bc1) / (np.sqrt(v / bc2) + self.adam_eps)).astype(np.float32)

        return loss

    # ---- parameter access ----

    def check_arrays(self, arrays: Sequence[np.ndarray], what: str) -> List[np.ndarray]:
        if len(arrays) != len(self.params):
            raise ShapeMismatchError(f"{what}: expected {len(self.params)} arrays, got {len(arrays)}")
        out = []
        for i, (a, ref) in enumerate(zip(arrays, self.params)):
            arr = np.array(a, dtype=np.float32, copy=True)
            if arr.shape != ref.shape:
                raise ShapeMismatchError(f"{what}[{i}]: expected shape {ref.shape}, got {arr.shape}")
            out.append(arr)
        return out

    def get_parameters(self) -> List[np.ndarray]:
        return [p.copy() for p in self.params]

    def set_parameters(self, params: Sequence[np.ndarray]) -> None:
        self.params = self.check_arrays(params, "parameters")

    def get_optimizer_state(self) -> Dict[str, object]:
        return {
            "t": int(self._t),
            "m": [a.copy() for a in self._m],
            "v": [a.copy() for a in self._v],
        }

    def set_optimizer_state(self, state: Dict[str, object]) -> None:
        m = self.check_arrays(state["m"], "adam m")
        v = self.check_arrays(state["v"], "adam v")
        t = int(state["t"])
        if t < 0:
            raise ValueError("optimizer step count must be non-negative.")
        self._m, self._v, self._t = m, v, t
