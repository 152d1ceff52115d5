"""DefenseHub - capstone and internship defense session backend"""

__version__ = "1.0.0"
