from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

import logging

# import python-socketio ASGI
import socketio

from . import config
from .game_logic import GameError, GameManager, InvalidInput


logger = logging.getLogger(__name__)

app = FastAPI()

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if config.CORS_ORIGINS == "*" else config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
)

# all session state lives here; handlers look it up at call time
game_manager = GameManager(groups=config.GROUPS)


@app.get("/")
async def read_root():
    return {"message": "Find-the-answer-game server running"}


@app.get("/groups/{group}/players")
async def group_players(group: int):
    if group < 1 or group > game_manager.groups:
        return JSONResponse({'error': f'Group must be between 1 and {game_manager.groups}'}, status_code=404)
    return JSONResponse({'group': group, 'players': game_manager.roster(group)})


# ----------------- Socket.IO server -----------------
# async_handlers=False keeps each connection's events in arrival order
sio = socketio.AsyncServer(
    async_mode='asgi',
    cors_allowed_origins=config.CORS_ORIGINS,
    logger=config.SOCKETIO_DEBUG,
    engineio_logger=config.SOCKETIO_DEBUG,
    async_handlers=False,
)
socket_app = socketio.ASGIApp(sio, other_asgi_app=app)


async def _deliver(events):
    for event in events:
        await sio.emit(event.name, event.payload, room=event.to)


def _payload(data) -> dict:
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise InvalidInput("Malformed request")
    return data


@sio.event
async def connect(sid, environ, auth=None):
    logger.info('New connection: %s', sid)
    await sio.emit('group_count', game_manager.groups, room=sid)


@sio.event
async def register(sid, data=None):
    try:
        payload = _payload(data)
        participant, events = game_manager.register(sid, payload.get('name'), payload.get('group'))
    except GameError as e:
        logger.debug('register rejected for %s: %s', sid, e.code)
        return e.to_ack()
    logger.info('User %s joined group %s as %s', participant.name, participant.group, participant.role.value)
    await _deliver(events)
    return participant.to_ack()


@sio.event
async def reconnect_user(sid, data=None):
    try:
        payload = _payload(data)
        participant, events = game_manager.reconnect_user(
            sid, payload.get('name'), payload.get('role'), payload.get('group'))
    except GameError as e:
        if e.code == 'RoleOccupied':
            logger.warning('Role %s in group %s is taken, cannot restore %s',
                           payload.get('role'), payload.get('group'), payload.get('name'))
        else:
            logger.debug('reconnect rejected for %s: %s', sid, e.code)
        return e.to_ack()
    logger.info('Reconnected user %s (%s) group %s', participant.name, participant.role.value, participant.group)
    await _deliver(events)
    return participant.to_ack()


@sio.event
async def send_message(sid, data=None):
    try:
        payload = _payload(data)
        events = game_manager.send_message(sid, payload.get('toRole'), payload.get('text'))
    except GameError as e:
        logger.debug('send_message from %s failed: %s', sid, e.code)
        return e.to_ack()
    await _deliver(events)
    return {'ok': True}


@sio.event
async def submit_answer(sid, data=None):
    try:
        payload = _payload(data)
        events = game_manager.submit_answer(sid, payload.get('answer'))
    except GameError as e:
        logger.debug('submit_answer from %s failed: %s', sid, e.code)
        return e.to_ack()
    participant = game_manager.get_participant(sid)
    if participant is not None:
        logger.info('Final answer from %s in group %s', participant.name, participant.group)
    await _deliver(events)
    return {'ok': True}


@sio.event
async def disconnect(sid, reason=None):
    participant, events = game_manager.disconnect(sid)
    if participant is None:
        logger.info('Disconnect unknown socket %s', sid)
        return
    logger.info('Disconnect %s (%s)', participant.name, participant.role.value)
    await _deliver(events)


# expose the ASGI app at the module level so uvicorn can import app
asgi_app = socket_app


def run():
    import uvicorn

    logging.basicConfig(
        level=config.LOG_LEVEL,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    logger.info('Server running on port %s, GROUPS=%s', config.PORT, config.GROUPS)
    uvicorn.run(asgi_app, host=config.HOST, port=config.PORT)


if __name__ == '__main__':
    run()
