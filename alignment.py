"""
Period alignment across assets.

Only periods where every asset has a return survive. Missing periods are never
imputed: zero-filling would bias variance downward.
"""

import logging
import numpy as np
import pandas as pd
from typing import Mapping
from models import AlignedMatrix

logger = logging.getLogger(__name__)


def align_return_maps(return_maps: Mapping[str, Mapping[int, float]]) -> AlignedMatrix:
    """
    Intersects period keys across assets and builds per-asset vectors on them.

    The maps become the columns of a frame indexed by period key; dropping
    incomplete rows leaves the intersection. A non-finite return drops its
    period for every asset so the vectors stay the same length.

    Args:
        return_maps: Asset identifier -> (period key -> return).

    Returns:
        AlignedMatrix with the ascending common axis and one vector per asset.
    """
    if not return_maps:
        return AlignedMatrix()

    columns = {asset: pd.Series(dict(series), dtype=float) for asset, series in return_maps.items()}
    returns_df = pd.DataFrame(columns).replace([np.inf, -np.inf], np.nan).dropna().sort_index()

    periods = tuple(int(key) for key in returns_df.index)
    vectors = {
        asset: tuple(float(value) for value in returns_df[asset]) for asset in return_maps
    }

    logger.debug(f"Aligned {len(return_maps)} assets on {len(periods)} common periods")
    return AlignedMatrix(periods=periods, returns=vectors)
