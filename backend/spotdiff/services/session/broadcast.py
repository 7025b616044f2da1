class SocketIOBroadcaster:
    """Delivers outbound events through Flask-SocketIO rooms.

    Each game room maps to one Socket.IO room named ``room:<code>``.
    """

    def __init__(self, socketio, namespace='/ws'):
        self.socketio = socketio
        self.namespace = namespace

    @staticmethod
    def channel(room_code):
        return f"room:{room_code}"

    def subscribe(self, connection, room_code):
        self.socketio.server.enter_room(connection, self.channel(room_code), namespace=self.namespace)

    def unsubscribe(self, connection, room_code):
        self.socketio.server.leave_room(connection, self.channel(room_code), namespace=self.namespace)

    def broadcast(self, room_code, event):
        self.socketio.emit(event.event_name, event.payload(), to=self.channel(room_code), namespace=self.namespace)

    def send(self, connection, event):
        self.socketio.emit(event.event_name, event.payload(), to=connection, namespace=self.namespace)

    def close_channel(self, room_code):
        self.socketio.close_room(self.channel(room_code), namespace=self.namespace)
