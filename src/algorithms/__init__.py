"""
Detection post-processing algorithms: filtering and demographic classification.
"""
