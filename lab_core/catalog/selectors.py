from __future__ import annotations

from typing import Iterable

from django.db.models import Q, QuerySet
from rest_framework.exceptions import NotFound

from lab_core.catalog.models import Exam


def get_exam(*, exam_id: int) -> Exam:
    try:
        return Exam.objects.get(id=exam_id)
    except (Exam.DoesNotExist, ValueError, TypeError):
        raise NotFound(f"Exam {exam_id} not found.")


def exams_filtered(
    *,
    exam_ids: Iterable[int] | None = None,
    category: str | None = None,
    search: str | None = None,
) -> QuerySet[Exam]:
    qs = Exam.objects.all().order_by("category", "name", "id")

    if exam_ids is not None:
        qs = qs.filter(id__in=list(exam_ids))
    if category:
        qs = qs.filter(category__iexact=category)
    if search:
        qs = qs.filter(Q(name__icontains=search) | Q(category__icontains=search))

    return qs
