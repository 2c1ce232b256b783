from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Optional
from schemas.review_schemas import ReviewRecord, ReviewStatsSchema


def round_half_up(value: float, places: int = 0) -> Decimal:
    quantum = Decimal(1).scaleb(-places)
    return Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP)


def compute_stats(records: Iterable[ReviewRecord], product_id: Optional[int] = None) -> ReviewStatsSchema:
    # only approved reviews count towards the public numbers
    approved = [record for record in records if record.is_approved]
    total = len(approved)
    distribution = {rating: 0 for rating in range(1, 6)}
    for record in approved:
        if record.rating in distribution:
            distribution[record.rating] += 1
    verified = sum(1 for record in approved if record.is_verified_buyer)
    recommendations = sum(1 for record in approved if record.recommends_product)
    if total:
        average = float(round_half_up(sum(record.rating for record in approved) / total, 1))
        rate = int(round_half_up(recommendations / total * 100))
    else:
        average = 0
        rate = 0
    return ReviewStatsSchema(
        product_id=product_id,
        total_reviews=total,
        average_rating=average,
        rating_distribution=distribution,
        verified_buyers=verified,
        recommendations=recommendations,
        recommendation_rate=rate,
    )
