# Estimator calibration constants
#
# Empirically chosen tuning values. Changing any of them changes numeric
# output for every estimate.

# IQR trimming
QUARTILE_LOW = 0.25
QUARTILE_HIGH = 0.75
IQR_MULTIPLIER = 1.5

# Perfect-score suppression
PERFECT_SCORE_RATIO = 0.999          # share of the exam total that counts as perfect
PERFECT_SCORE_ABSOLUTE = 99.9        # used when the exam total is unknown
PERFECT_SCORE_MAX_SHARE = 0.10
PERFECT_SCORE_MIN_SAMPLE = 10
PERFECT_SCORE_KEEP_SHARE = 0.5

# Top-heavy response bias
TOP_SHARE = 0.2
TOP_WEIGHT = 0.6
BOTTOM_WEIGHT = 1.0
PLAIN_MEAN_BLEND = 0.4
WEIGHTED_MEAN_BLEND = 0.6

# Spread correction
TOP_VARIANCE_WEIGHT = 0.3
BOTTOM_VARIANCE_WEIGHT = 0.7
BUCKET_VARIANCE_INFLATION = 1.2
TRIMMED_VARIANCE_BLEND = 0.5
FINAL_VARIANCE_INFLATION = 1.2

# Legacy estimator (pre fraud-suppression call sites)
LEGACY_TOP_WEIGHT = 0.7
LEGACY_TRIMMED_MEAN_BLEND = 0.6
LEGACY_WEIGHTED_MEAN_BLEND = 0.4
LEGACY_RESPONSE_BIAS = 0.85
LEGACY_VARIANCE_CORRECTION = 1.15

# Multi-exam prediction
MIDTERM_WEIGHT = 0.5
MIN_REAL_SAMPLE_SIZE = 30
# TODO: confirm with the grading team whether 5 is intended for simulated midterms
MIN_SIMULATED_SAMPLE_SIZE = 5

# Individual refinement
DEFAULT_USER_LEVEL = 50.0
SCORE_LEVEL_SLOPE = 20.0
REWEIGHT_FACTOR = 1.2
