"""Save pipeline - orchestration, session state, notices, notifiers"""
