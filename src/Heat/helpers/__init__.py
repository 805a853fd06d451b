"""Entry-point scripts run under mpiexec."""
