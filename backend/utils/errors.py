# Доменные ошибки. Роутеры переводят их в HTTPException по status_code.




class AppError(Exception):
    code = "error"
    status_code = 400
    retryable = False
    message = "Ошибка"

    def __init__(self, message: str | None = None):
        self.message = message or self.message
        super().__init__(self.message)

    def as_detail(self) -> dict:
        return {"code": self.code, "message": self.message}


class ValidationFailed(AppError):
    code = "validation_failed"
    status_code = 400


class NotFound(AppError):
    code = "not_found"
    status_code = 404


class StateConflict(AppError):
    code = "state_conflict"
    status_code = 409


class AuthError(AppError):
    code = "auth_error"
    status_code = 401


# Validation

class ReasonRequired(ValidationFailed):
    code = "reason_required"
    message = "Необходимо указать причину отказа"


class InvalidSchedule(ValidationFailed):
    code = "invalid_schedule"
    message = "Дедлайн регистрации должен быть раньше даты события"


class CapacityBelowParticipants(ValidationFailed):
    code = "capacity_below_participants"
    message = "Лимит участников не может быть меньше числа одобренных участников"


# Not found

class EventNotFound(NotFound):
    code = "event_not_found"
    message = "Событие не найдено"


class ApplicationNotFound(NotFound):
    code = "application_not_found"
    message = "Заявка не найдена"


class NotificationNotFound(NotFound):
    code = "notification_not_found"
    message = "Уведомление не найдено"


class UserNotFound(NotFound):
    code = "user_not_found"
    message = "Пользователь не найден"


# State conflicts

class EventNotActive(StateConflict):
    code = "event_not_active"
    message = "Событие не принимает участников"


class AlreadyApplied(StateConflict):
    code = "already_applied"
    message = "Вы уже подали заявку на это событие"


class AlreadyApproved(StateConflict):
    code = "already_approved"
    message = "Ваша заявка на это событие уже одобрена"


class PermanentlyBarred(StateConflict):
    code = "permanently_barred"
    message = "Ваша заявка была отклонена, повторная подача невозможна"


class RegistrationClosed(StateConflict):
    code = "registration_closed"
    message = "Регистрация на событие закрыта"


class EventFull(StateConflict):
    code = "event_full"
    retryable = True
    message = "Свободных мест нет"


class NotPending(StateConflict):
    code = "not_pending"
    message = "Заявка уже рассмотрена"


class BatchCapacityExceeded(StateConflict):
    code = "batch_capacity_exceeded"
    retryable = True

    def __init__(self, event_ids: list[int]):
        self.event_ids = sorted(event_ids)
        super().__init__(
            "Недостаточно мест для одобрения заявок в событиях: "
            + ", ".join(str(event_id) for event_id in self.event_ids)
        )

    def as_detail(self) -> dict:
        detail = super().as_detail()
        detail["event_ids"] = self.event_ids
        return detail


class NoPendingApplications(StateConflict):
    code = "no_pending_applications"
    message = "Нет заявок на рассмотрении"


class ApprovedCannotLeave(StateConflict):
    code = "approved_cannot_leave"
    message = "Нельзя отказаться от одобренного участия, обратитесь к организатору"


class NotParticipating(StateConflict):
    code = "not_participating"
    message = "Вы не зарегистрированы на это событие"


class EventHasApplications(StateConflict):
    code = "event_has_applications"
    message = "На событие есть заявки, отмените его вместо удаления"


class EmailTaken(StateConflict):
    code = "email_taken"
    message = "Пользователь с таким email уже существует"


# Auth

class InvalidCredentials(AuthError):
    code = "invalid_credentials"
    message = "Неверный email или пароль"


class AccountBlocked(AuthError):
    code = "account_blocked"
    status_code = 403
    message = "Аккаунт заблокирован"


class TokenExpired(AuthError):
    code = "token_expired"
    message = "Срок действия токена истек"


class TokenInvalid(AuthError):
    code = "token_invalid"
    message = "Неверный токен"


class Forbidden(AuthError):
    code = "forbidden"
    status_code = 403
    message = "Недостаточно прав"
