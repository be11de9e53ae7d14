"""Shared constants for the Feedback Hub backend."""

# Feedback field bounds, checked after trimming surrounding whitespace.
SUBJECT_MIN_LENGTH: int = 3
SUBJECT_MAX_LENGTH: int = 200
MESSAGE_MIN_LENGTH: int = 10
MESSAGE_MAX_LENGTH: int = 1000

# Star rating range (inclusive)
RATING_MIN: int = 1
RATING_MAX: int = 5

# Accepted values for the admin rating filter
RATING_FILTER_ALL = "all"

PASSWORD_MIN_LENGTH: int = 8
