class LoadDerivation:
    """Initial working weights derived from a squat/bench/deadlift baseline."""

    SQUAT_GROUPS = {"legs"}
    BENCH_HEAVY_GROUPS = {"chest", "back", "shoulders"}
    BENCH_LIGHT_GROUPS = {"arms", "biceps", "triceps"}

    SQUAT_FACTOR = 0.70
    BENCH_HEAVY_FACTOR = 0.60
    BENCH_LIGHT_FACTOR = 0.50
    DEADLIFT_FACTOR = 0.60

    @classmethod
    def initial_weight(
        cls, muscle_group: str, squat: float, bench: float, deadlift: float
    ) -> float:
        """Return the starting weight for ``muscle_group`` rounded to 2 places."""
        if muscle_group in cls.SQUAT_GROUPS:
            weight = squat * cls.SQUAT_FACTOR
        elif muscle_group in cls.BENCH_HEAVY_GROUPS:
            weight = bench * cls.BENCH_HEAVY_FACTOR
        elif muscle_group in cls.BENCH_LIGHT_GROUPS:
            weight = bench * cls.BENCH_LIGHT_FACTOR
        else:
            weight = deadlift * cls.DEADLIFT_FACTOR
        return round(weight, 2)
