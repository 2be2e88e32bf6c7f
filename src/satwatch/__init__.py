"""satwatch -- Screen-watching SAT question detector.

This package watches the screen during SAT practice, reads it with OCR,
filters rendering noise, and classifies newly stable content as a test
question (with subject and confidence) for a tutoring layer to consume.
"""

__version__ = "0.1.0"
