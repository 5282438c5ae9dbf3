from __future__ import annotations

import math
from dataclasses import dataclass

from fastapi import Query

from .config import get_settings
from .schemas import Pagination

settings = get_settings()


@dataclass
class PageParams:
	page: int
	limit: int

	def describe(self, total: int) -> Pagination:
		return Pagination(page=self.page, limit=self.limit, total=total, pages=math.ceil(total / self.limit))


def page_params(
	page: int = Query(default=1, ge=1),
	limit: int = Query(default=settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
) -> PageParams:
	return PageParams(page=page, limit=limit)
