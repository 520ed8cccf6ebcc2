"""
classgrader: Batch grading of student programs

Builds each student submission and runs a shared suite of black-box test
cases against it, in parallel, under per-process time and output limits.
"""

__version__ = "0.1.0"
