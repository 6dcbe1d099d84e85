from .user import User, UserRole
from .branch import Branch
from .room import Room, RoomType, RoomStatus
from .guest import Guest
from .reservation import Reservation, ReservationRoom, ReservationStatus
from .tax import Tax, TaxApplicationType
from .outbox import OutboxEvent, OutboxTopic
