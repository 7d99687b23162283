#!/usr/bin/env python3
"""
Round-trip statistics

RunSummary is the single result of a requester run:
endpoint, sample count, payload length/size, mean and population stdev.
"""

import csv
import json
import math
from dataclasses import dataclass, asdict
from typing import Dict, Sequence, Union

import numpy as np


@dataclass(frozen=True)
class RunSummary:
    endpoint: str
    count: int
    length: int
    size_bytes: int
    avg_seconds: float
    stdev_seconds: float

    def to_record(self) -> Dict:
        return asdict(self)

    def to_json(self) -> str:
        """One-line JSON record for stdout"""
        return json.dumps(self.to_record())


def mean_and_stdev(samples: Union[Sequence[float], np.ndarray]):
    """
    Mean and population standard deviation

    stdev = sqrt(E[x^2] - mean^2)  (not sample-corrected)

    Raises:
        ValueError: no samples
    """
    times = np.asarray(samples, dtype=np.float64)
    if times.size == 0:
        raise ValueError("Cannot summarize an empty sample sequence")

    avg = float(times.sum() / times.size)
    sq_mean = float(np.dot(times, times) / times.size)
    # Rounding can push the variance of near-constant samples slightly below zero
    variance = max(sq_mean - avg * avg, 0.0)
    return avg, math.sqrt(variance)


def summarize(samples: Union[Sequence[float], np.ndarray], endpoint: str,
              payload: np.ndarray) -> RunSummary:
    """
    Build the RunSummary for one requester run

    Args:
        samples: round-trip durations [s]
        endpoint: address string the requester connected to
        payload: the payload sent on every round trip

    Returns:
        RunSummary
    """
    avg, stdev = mean_and_stdev(samples)
    return RunSummary(
        endpoint=endpoint,
        count=len(samples),
        length=int(payload.size),
        size_bytes=int(payload.nbytes),
        avg_seconds=avg,
        stdev_seconds=stdev,
    )


def write_samples_csv(path: str, samples: Union[Sequence[float], np.ndarray]):
    """Dump raw round-trip samples as seq,rtt_seconds rows"""
    with open(path, 'w', newline='') as f:
        writer = csv.writer(f)
        writer.writerow(['seq', 'rtt_seconds'])
        for seq, rtt in enumerate(samples):
            writer.writerow([seq, f"{float(rtt):.9f}"])
