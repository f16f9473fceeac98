"""
Storage corrections for road and channel cuts.

A cut of plan area A in a cell of area DX * DY removes a fraction
f = A / (DX * DY) of the soil from every layer lying above the cut bottom.
The layer containing the cut bottom loses only the share of its thickness
above the cut. Water percolating across a layer bottom that lies at or above
the cut bottom passes through (1 - f) of the cell footprint.
"""
import logging
from typing import List, Sequence, Tuple

import numpy as np

from soilflow.core.constants import NO_CUT

logger = logging.getLogger(__name__)


def _check_cut_fraction(cut_fraction: float) -> None:
    if not 0.0 <= cut_fraction < 1.0:
        raise ValueError(f"Cut fraction must lie in [0, 1), got {cut_fraction}")


def adjust_storage(
    root_depths: Sequence[float],
    total_depth: float,
    bank_height: float,
    cut_fraction: float
) -> Tuple[np.ndarray, int]:
    """
    Storage adjustment factor for every layer, deep layer included.

    Args:
        root_depths: Thickness of each explicit layer (m)
        total_depth: Total soil depth (m)
        bank_height: Depth of the cut bottom below the surface (m)
        cut_fraction: Fraction of the cell area taken by the cut

    Returns:
        (adjust, cut_bank_zone): N + 1 factors and the index of the layer
        holding the cut bottom (N for the deep layer, NO_CUT without a cut)
    """
    _check_cut_fraction(cut_fraction)
    thicknesses: List[float] = [float(d) for d in root_depths]
    thicknesses.append(total_depth - sum(thicknesses))

    adjust = np.ones(len(thicknesses))
    if bank_height <= 0.0 or cut_fraction == 0.0:
        return adjust, NO_CUT

    if bank_height >= total_depth:
        raise ValueError(
            f"Cut bottom ({bank_height} m) must lie above the column base ({total_depth} m)"
        )

    zone = NO_CUT
    top = 0.0
    for i, thickness in enumerate(thicknesses):
        bottom = top + thickness
        if bottom <= bank_height:
            adjust[i] = 1.0 - cut_fraction
        elif top < bank_height:
            adjust[i] = 1.0 - cut_fraction * (bank_height - top) / thickness
            zone = i
        elif zone == NO_CUT:
            # Cut bottom sits exactly on this layer's top
            zone = i
        top = bottom

    logger.debug(f"Cut at {bank_height:.3f} m ends in layer {zone}; adjust={adjust}")
    return adjust, zone


def cut_bank_geometry(
    root_depths: Sequence[float],
    bank_height: float,
    cut_fraction: float
) -> np.ndarray:
    """Basal-area fraction of each explicit layer's bottom"""
    _check_cut_fraction(cut_fraction)
    bottoms = np.cumsum(np.asarray(root_depths, dtype=float))

    perc_area = np.ones(len(bottoms))
    if bank_height > 0.0:
        perc_area[bottoms <= bank_height] = 1.0 - cut_fraction

    return perc_area
