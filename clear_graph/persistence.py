"""
Saving and restoring the trainable parameters of a layer graph.

File format: a compressed NumPy archive (.npz) holding

    format_version   0-d int, currently 1
    layer_labels     LAYER_LABEL of every node, in depth-first walk order
    parameter_names  name of every Parameter, in the same order
    parameter_count  0-d int
    parameter_{i}    the i-th Parameter tensor

The label sequence acts as a fingerprint of the graph structure: a file can
only be loaded into a graph built the same way.
"""

import logging
from typing import List

import numpy as np

from .layer import Layer

FORMAT_VERSION = 1


def _npz_name(filename: str) -> str:
    return filename if filename.endswith('.npz') else filename + '.npz'


def layer_labels(network: Layer) -> List[str]:
    return [node.LAYER_LABEL for node in network.walk()]


def save_parameters(network: Layer, filename: str) -> str:
    """
    Writes every Parameter of `network` to `filename`.

    Args:
        network: Terminal layer of the graph.
        filename: Target path; '.npz' is appended when missing.

    Returns:
        The path actually written.
    """
    filename = _npz_name(filename)
    params = list(network.parameters())
    save_dict = {
        'format_version': np.array(FORMAT_VERSION),
        'layer_labels': np.array(layer_labels(network), dtype=str),
        'parameter_names': np.array([p.name for p in params], dtype=str),
        'parameter_count': np.array(len(params)),
    }
    for i, param in enumerate(params):
        save_dict[f'parameter_{i}'] = param.value

    np.savez_compressed(filename, **save_dict)
    logging.info(f"Saved {len(params)} parameter tensors to {filename}")
    return filename


def load_parameters(network: Layer, filename: str):
    """
    Restores every Parameter of `network` from a file written by
    `save_parameters`. Nothing is modified unless the whole file matches.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If the file has another format version, was saved from
            a differently structured graph, or holds tensors of the wrong
            shape.
    """
    filename = _npz_name(filename)
    try:
        data = np.load(filename, allow_pickle=False)
    except FileNotFoundError:
        logging.error(f"Parameter file not found: {filename}")
        raise

    try:
        version = int(data['format_version'])
        if version != FORMAT_VERSION:
            raise ValueError(f"Unsupported format version {version} in {filename}; expected {FORMAT_VERSION}")

        saved_labels = data['layer_labels'].tolist()
        expected_labels = layer_labels(network)
        if saved_labels != expected_labels:
            raise ValueError(
                f"Graph structure in {filename} does not match the network: "
                f"saved {saved_labels}, expected {expected_labels}"
            )

        params = list(network.parameters())
        count = int(data['parameter_count'])
        if count != len(params):
            raise ValueError(f"{filename} holds {count} parameters, network has {len(params)}")

        values = [data[f'parameter_{i}'] for i in range(count)]
        for param, value in zip(params, values):
            if param.value.shape != value.shape:
                raise ValueError(
                    f"Parameter {param.name}: saved shape {value.shape} "
                    f"does not match expected shape {param.value.shape}"
                )
    except KeyError as e:
        raise ValueError(f"Incompatible or incomplete parameter file: {filename}") from e
    finally:
        data.close()

    for param, value in zip(params, values):
        param.set_value(value)
    network.clean_all()
    logging.info(f"Loaded {len(params)} parameter tensors from {filename}")
