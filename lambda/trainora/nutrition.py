import math
from datetime import date, datetime

from .errors import ValidationError

GOAL_FACTORS = {
    "gain_muscle": 1.10,
    "gain_both": 1.15,
    "lose_fat": 0.85,
}

INTENSITY_BONUS = {
    "1-2": 0.1,
    "3-4": 0.2,
    "more": 0.3,
}


def round_half_up(x) -> int:
    return int(math.floor(x + 0.5))


def to_number(value, field: str) -> float:
    if isinstance(value, bool) or value is None:
        raise ValidationError(f"{field} must be a number")
    try:
        n = float(value)
    except (TypeError, ValueError, OverflowError):
        raise ValidationError(f"{field} must be a number")
    if not math.isfinite(n):
        raise ValidationError(f"{field} must be a number")
    return n


def calc_age(birth_date, today: date) -> int:
    if not isinstance(birth_date, str):
        raise ValidationError("dateOfBirth is required")
    try:
        birth = datetime.strptime(birth_date[:10], "%Y-%m-%d").date()
    except ValueError:
        raise ValidationError("dateOfBirth must be YYYY-MM-DD")
    age = today.year - birth.year
    if (today.month, today.day) < (birth.month, birth.day):
        age -= 1
    return age


def calc_bmr(gender, weight: float, height: float, age: int) -> int:
    base = 10 * weight + 6.25 * height - 5 * age
    if gender == "male":
        return round_half_up(base + 5)
    if gender == "female":
        return round_half_up(base - 161)
    return round_half_up(base)


def activity_multiplier(activity) -> float:
    if not isinstance(activity, dict):
        activity = {}
    base = 1.2
    if activity.get("workStyle") == "standing":
        base += 0.1
    intensity = activity.get("highIntensity")
    if isinstance(intensity, str) and intensity in INTENSITY_BONUS:
        base += INTENSITY_BONUS[intensity]
    return base


def recommended_calories(tdee: int, goal_type) -> int:
    if not isinstance(goal_type, str) or goal_type not in GOAL_FACTORS:
        return tdee
    return round_half_up(tdee * GOAL_FACTORS[goal_type])


def summarize(gender, weight, height, date_of_birth, activity, goal_type, today: date) -> dict:
    """Daily energy summary for a profile.

    Mifflin-St Jeor BMR scaled by an activity multiplier (TDEE), then
    adjusted for the goal. Weight in kg, height in cm.
    """
    weight = to_number(weight, "weight")
    height = to_number(height, "height")
    age = calc_age(date_of_birth, today)

    bmr = calc_bmr(gender, weight, height, age)
    tdee = round_half_up(bmr * activity_multiplier(activity))
    return {
        "bmr": bmr,
        "tdee": tdee,
        "recommendedCalories": recommended_calories(tdee, goal_type),
    }
