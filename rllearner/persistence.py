from __future__ import annotations

import json
import os
import zipfile
from dataclasses import dataclass
from pathlib import Path
from tempfile import NamedTemporaryFile
from typing import Any, Dict, List, Union

import numpy as np

from .errors import PersistenceError

FORMAT_VERSION = 1

PathLike = Union[str, "os.PathLike[str]"]


@dataclass
class Checkpoint:
    parameters: List[np.ndarray]
    adam_m: List[np.ndarray]
    adam_v: List[np.ndarray]
    meta: Dict[str, Any]


def _key(prefix: str, i: int) -> str:
    return f"{prefix}_{i:03d}"


def save_checkpoint(path: PathLike, checkpoint: Checkpoint) -> None:
    """Write a checkpoint as a single .npz archive, replacing `path` atomically.

    Arrays are stored under numbered keys; everything else goes into a JSON
    document under the "meta" key. The archive is first written to a
    temporary file in the destination directory so an interrupted save never
    leaves a truncated checkpoint behind.
    """
    path = Path(path)
    arrays: Dict[str, np.ndarray] = {}
    for prefix, group in (("param", checkpoint.parameters), ("adam_m", checkpoint.adam_m), ("adam_v", checkpoint.adam_v)):
        for i, a in enumerate(group):
            arrays[_key(prefix, i)] = np.asarray(a)

    meta = {**checkpoint.meta, "format_version": FORMAT_VERSION, "num_arrays": len(checkpoint.parameters)}
    temp_name = None
    try:
        arrays["meta"] = np.array(json.dumps(meta))
        path.parent.mkdir(parents=True, exist_ok=True)
        with NamedTemporaryFile("wb", dir=path.parent, delete=False, prefix=path.name, suffix=".tmp") as tmp:
            temp_name = Path(tmp.name)
            np.savez(tmp, **arrays)
            tmp.flush()
            os.fsync(tmp.fileno())
        os.replace(temp_name, path)
    except (OSError, TypeError, ValueError) as e:
        if temp_name is not None:
            temp_name.unlink(missing_ok=True)
        raise PersistenceError(f"Failed to save checkpoint to {path}: {e}") from e


def load_checkpoint(path: PathLike) -> Checkpoint:
    path = Path(path)
    try:
        with np.load(path, allow_pickle=False) as data:
            meta = json.loads(str(data["meta"]))
            if not isinstance(meta, dict):
                raise ValueError("meta is not a JSON object")
            version = meta.get("format_version")
            if version != FORMAT_VERSION:
                raise ValueError(f"unsupported checkpoint format version {version!r}")
            n = int(meta["num_arrays"])
            parameters = [np.array(data[_key("param", i)]) for i in range(n)]
            adam_m = [np.array(data[_key("adam_m", i)]) for i in range(n)]
            adam_v = [np.array(data[_key("adam_v", i)]) for i in range(n)]
    except (OSError, EOFError, ValueError, KeyError, TypeError, AttributeError, zipfile.BadZipFile) as e:
        raise PersistenceError(f"Failed to load checkpoint from {path}: {e}") from e
    return Checkpoint(parameters=parameters, adam_m=adam_m, adam_v=adam_v, meta=meta)
