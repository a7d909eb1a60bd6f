"""
API module.
Thin HTTP façade over the job queue.
"""
