"""
Letter grades and performance labels for a percentage.

Both tables are ordered from the highest band down; a percentage falls
into the first band whose lower bound it reaches (lower bounds inclusive).
"""

# (lower bound, grade, performance label)
DEFAULT_GRADE_SCALE = (
    (90.0, 'O', 'Outstanding'),
    (80.0, 'A+', 'Excellent'),
    (70.0, 'A', 'Very Good'),
    (60.0, 'B+', 'Good'),
    (50.0, 'B', 'Average'),
    (40.0, 'C', 'Below Average'),
    (0.0, 'F', 'Poor'),
)

# Coarse label shown on overall reports
DEFAULT_PERFORMANCE_BANDS = (
    (80.0, 'Excellent'),
    (60.0, 'Good'),
    (40.0, 'Average'),
    (0.0, 'Poor'),
)

GRADES = tuple(row[1] for row in DEFAULT_GRADE_SCALE)


def _band_for(percentage, table):
    for row in table:
        if percentage >= row[0]:
            return row
    # Below every lower bound: the last band is the catch-all
    return table[-1]


def grade_for(percentage, scale=DEFAULT_GRADE_SCALE):
    """Letter grade for a percentage, e.g. 85 -> 'A+'."""
    return _band_for(percentage, scale)[1]


def grade_label_for(percentage, scale=DEFAULT_GRADE_SCALE):
    """Fine performance label for a percentage, e.g. 85 -> 'Excellent'."""
    return _band_for(percentage, scale)[2]


def performance_level_for(percentage, bands=DEFAULT_PERFORMANCE_BANDS):
    """Coarse performance level used on overall reports."""
    return _band_for(percentage, bands)[1]


def is_passing(percentage, pass_threshold=40.0):
    return percentage >= pass_threshold
