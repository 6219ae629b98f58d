import os
import socketio
import time

# Configuration
GROUP = int(os.getenv("DEMO_GROUP", "1"))
SERVER_URL = os.getenv("DEMO_SERVER_URL", "http://127.0.0.1:10000")
DEMO_PLAYERS = ["Alice", "Bohdan", "Chen", "Dana", "Emil", "Fatima"]


# --- Main Script ---
def add_demo_players():
    """
    Connects one Socket.IO client per role into a group, has the hub greet
    everyone and lets the answer role submit a final answer.
    """
    clients = {}

    for name in DEMO_PLAYERS:
        try:
            sio = socketio.Client()

            @sio.on('private_message')
            def private_message(data, name=name):
                print(f"[{name}] {data['fromName']} ({data['fromRole']}): {data['text']}")

            @sio.on('game_result')
            def game_result(data, name=name):
                print(f"[{name}] Result: {data['message']}")

            @sio.event
            def disconnect(*args, name=name):
                print(f"[{name}] Disconnected from server")

            sio.connect(SERVER_URL, transports=['websocket'])
            res = sio.call('register', {'name': name, 'group': GROUP})
            if not res.get('ok'):
                print(f"[{name}] Error: {res.get('error')}")
                sio.disconnect()
                continue
            print(f"[{name}] Registered as {res['role']} in group {res['group']}")
            clients[res['role']] = sio
            time.sleep(0.2)  # Stagger connections slightly

        except Exception as e:
            print(f"Failed to create client for {name}: {e}")

    print(f"Added {len(clients)} demo players to group {GROUP}.")

    hub = clients.get('B')
    if hub:
        for role in clients:
            if role == 'B':
                continue
            res = hub.call('send_message', {'toRole': role, 'text': f"Hello {role}, what is your clue?"})
            if not res.get('ok'):
                print(f"[hub] Error: {res.get('error')}")
    answerer = clients.get('C')
    if answerer:
        answerer.call('submit_answer', {'answer': '42'})

    # Keep the script running to maintain connections
    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        print("\nDisconnecting clients...")
        for sio in clients.values():
            sio.disconnect()
        print("All clients disconnected.")


if __name__ == '__main__':
    add_demo_players()
