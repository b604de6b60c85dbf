"""
Правила состава бронирования, общие для проживания и услуг.

Валидатор не имеет побочных эффектов: обе машины состояний вызывают его
до того, как обратиться к журналу вместимости или расписанию.
"""

from typing import Optional

from .domain import Gender, InvalidPartySize, ReservationType


class ReservationValidator:
    """Проверка количества людей и соответствия полу."""

    @staticmethod
    def validate_sizing(
        type: ReservationType,
        men_quantity: int,
        women_quantity: int,
        subject_gender: Optional[Gender] = None,
    ) -> None:
        """Проверяет состав бронирования, иначе выбрасывает InvalidPartySize."""
        if men_quantity < 0:
            raise InvalidPartySize(
                "non_negative",
                "Количество мужчин не может быть отрицательным",
                field="men_quantity",
                value=men_quantity,
            )
        if women_quantity < 0:
            raise InvalidPartySize(
                "non_negative",
                "Количество женщин не может быть отрицательным",
                field="women_quantity",
                value=women_quantity,
            )

        total = men_quantity + women_quantity

        if type == ReservationType.INDIVIDUAL:
            if total != 1:
                raise InvalidPartySize(
                    "individual_size",
                    f"Индивидуальное бронирование рассчитано ровно на 1 человека, "
                    f"указано {total}",
                    field="men_quantity+women_quantity",
                    value=total,
                )
            if subject_gender is not None:
                own, other = (
                    (men_quantity, women_quantity)
                    if subject_gender == Gender.MALE
                    else (women_quantity, men_quantity)
                )
                if own != 1 or other != 0:
                    raise InvalidPartySize(
                        "gender_mismatch",
                        f"Место должно соответствовать полу пользователя "
                        f"({subject_gender.value})",
                        field="gender",
                        value=subject_gender.value,
                    )
        elif type == ReservationType.GROUP:
            if total < 2:
                raise InvalidPartySize(
                    "group_size",
                    f"Групповое бронирование требует не менее 2 человек, "
                    f"указано {total}",
                    field="men_quantity+women_quantity",
                    value=total,
                )
        else:
            raise InvalidPartySize(
                "reservation_type",
                f"Неизвестный тип бронирования: {type}",
                field="type",
                value=type,
            )


validate_sizing = ReservationValidator.validate_sizing
