"""
Trading engine: bundle assembly, submission, execution and exit evaluation.
"""
