"""
Fixed vocabularies shared by the question bank, the generator and grading.
"""

DIFFICULTY_LEVELS = ('Easy', 'Medium', 'Hard')

QUESTION_TYPES = ('MCQ', 'MMCQ', 'Numeric')

# Question types answered by picking option letters
OPTION_QUESTION_TYPES = ('MCQ', 'MMCQ')

OPTION_LETTERS = ('A', 'B', 'C', 'D')

DEFAULT_DIFFICULTY_DISTRIBUTION = {'Easy': 30, 'Medium': 50, 'Hard': 20}

DEFAULT_TYPE_DISTRIBUTION = {'MCQ': 60, 'MMCQ': 20, 'Numeric': 20}
