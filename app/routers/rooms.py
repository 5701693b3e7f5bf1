from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.dependencies import get_current_user
from app.errors import NotFound
from app.models.participant import Participant
from app.models.user import User
from app.schemas.room import (
    EmailInvite,
    EmailInviteResponse,
    OwnedRoomResponse,
    ParticipantCreate,
    ParticipantResponse,
    ParticipantRoleUpdate,
    ParticipantUserResponse,
    RoomCreate,
    RoomResponse,
    RoomUpdate,
)
from app.services.participant_service import (
    add_participant,
    invite_by_email,
    list_participants,
    remove_participant,
    remove_participant_by_id,
    touch_participant,
    update_participant_role,
)
from app.services.room_service import (
    create_room,
    delete_room,
    get_room_by_slug,
    get_rooms_for_owner,
    update_room,
)

router = APIRouter(prefix="/rooms", tags=["rooms"])


def _participant_response(participant: Participant, user: User | None = None) -> ParticipantResponse:
    response = ParticipantResponse.model_validate(participant)
    if user is not None:
        response.user = ParticipantUserResponse.model_validate(user)
    return response


@router.post("", response_model=RoomResponse, status_code=status.HTTP_201_CREATED)
async def create_new_room(
    body: RoomCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return await create_room(db, current_user, name=body.name, description=body.description)


@router.get("", response_model=list[OwnedRoomResponse])
async def list_own_rooms(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    owned = await get_rooms_for_owner(db, current_user)
    return [
        OwnedRoomResponse(
            **RoomResponse.model_validate(entry.room).model_dump(),
            participant_count=entry.participant_count,
        )
        for entry in owned
    ]


@router.get("/by-slug/{slug}", response_model=RoomResponse)
async def get_room_info(
    slug: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    room = await get_room_by_slug(db, slug, viewer=current_user)
    if room is None:
        raise NotFound("Room not found")
    return room


@router.patch("/{room_id}", response_model=RoomResponse)
async def update_room_settings(
    room_id: int,
    body: RoomUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return await update_room(db, room_id, current_user, body.model_dump(exclude_unset=True))


@router.delete("/{room_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_existing_room(
    room_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    await delete_room(db, room_id, current_user)
    return None


@router.get("/{room_id}/participants", response_model=list[ParticipantResponse])
async def get_room_participants(
    room_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    rows = await list_participants(db, room_id, current_user)
    return [_participant_response(participant, user) for participant, user in rows]


@router.post(
    "/{room_id}/participants",
    response_model=ParticipantResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_room_participant(
    room_id: int,
    body: ParticipantCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    participant = await add_participant(db, room_id, current_user, body.user_id, role=body.role)
    return _participant_response(participant)


@router.patch("/{room_id}/participants/{participant_id}", response_model=ParticipantResponse)
async def change_participant_role(
    room_id: int,
    participant_id: int,
    body: ParticipantRoleUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    participant = await update_participant_role(
        db, room_id, current_user, participant_id, body.role
    )
    return _participant_response(participant)


@router.delete(
    "/{room_id}/participants/users/{user_id}", status_code=status.HTTP_204_NO_CONTENT
)
async def remove_room_participant(
    room_id: int,
    user_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    await remove_participant(db, room_id, current_user, user_id)
    return None


@router.delete(
    "/{room_id}/participants/{participant_id}", status_code=status.HTTP_204_NO_CONTENT
)
async def remove_room_participant_by_id(
    room_id: int,
    participant_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    await remove_participant_by_id(db, room_id, current_user, participant_id)
    return None


@router.post("/{room_id}/invites/email", response_model=EmailInviteResponse)
async def invite_participants_by_email(
    room_id: int,
    body: EmailInvite,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    outcome = await invite_by_email(db, room_id, current_user, [str(e) for e in body.emails])
    return EmailInviteResponse(
        added=[_participant_response(p) for p in outcome.added],
        already_members=outcome.already_members,
        unknown_emails=outcome.unknown_emails,
    )


@router.post("/{room_id}/heartbeat", response_model=ParticipantResponse)
async def heartbeat(
    room_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Refresh the caller's ``last_seen`` in the room."""
    participant = await touch_participant(db, room_id, current_user)
    return _participant_response(participant)
