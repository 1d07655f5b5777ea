from typing import Iterable, Tuple

DEFAULT_COURSE_CREDITS = 0.5


def calculate_term_average(course_grades: Iterable[float], *, round_to: int = 2) -> float:
    """
    course_grades: iterable of current course grades (0-100)
    Term average = Σ(grade) / number of courses
    """
    total = 0.0
    count = 0
    for grade in course_grades:
        total += grade
        count += 1

    if count == 0:
        return 0.0

    return round(total / count, round_to)


def calculate_weighted_term_average(course_results: Iterable[Tuple[float, float]], *, round_to: int = 2) -> float:
    """
    course_results: iterable of (grade, credits)
    Weighted average = Σ(grade * credits) / Σ(credits)
    """
    weighted_sum = 0.0
    total_credits = 0.0

    for grade, credits in course_results:
        if credits <= 0:
            raise ValueError("Course credits must be greater than 0")
        weighted_sum += grade * credits
        total_credits += credits

    if total_credits == 0:
        return 0.0

    return round(weighted_sum / total_credits, round_to)
