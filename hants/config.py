"""
Central configuration constants for the HANTS fitting package.
"""

import math

# ========== Fit defaults ==========
DEFAULT_NFREQ = 3  # harmonics above the zero frequency
DEFAULT_DELTA = 0.1  # diagonal damping of the normal equations (not on the mean)
DEFAULT_FIT_TOLERANCE = 0.0  # accept a fit once the worst signed deviation is below this
DEFAULT_OVERDETERMINEDNESS = 0  # extra trusted points kept beyond the minimum
DEFAULT_VALID_RANGE = (-math.inf, math.inf)  # open interval, bounds are exclusive

# ========== Batch settings ==========
DEFAULT_CHUNK_SIZE = 2048  # series per process-pool task

# ========== NPZ keys ==========
INPUT_KEY = "data"  # default array name read from input NPZ files
