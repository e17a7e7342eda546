"""CP-SAT planning models and the solve/decode driver."""
