from textual.message import Message


class QuitRequestedMessage(Message):
    """
    broadcasted when the app is about to quit
    """

    bubble = True


class UserLogoutMessage(Message):
    """
    posted by the sidebar when the user confirms logging out
    handled at app level
    """

    bubble = True


class SessionChangedMessage(Message):
    """
    Posted to the active screen after login or logout, so the sidebar
    can re-render user info and menus
    """

    bubble = False


class CartChangedMessage(Message):
    """
    Fired whenever the cart is mutated (add, quantity change, remove, clear, checkout)
    Will trigger a refresh of the cart screen
    """

    bubble = True


class OrderPlacedMessage(Message):
    """
    Fired after a successful checkout, logged at app level
    """

    bubble = True

    def __init__(self, order_id: int) -> None:
        super().__init__()
        self.order_id = order_id


class ModeSwitchedMessage(Message):
    """
    fired whenever switch_mode is called from the sidebar
    """

    bubble = True

    def __init__(self, old_mode: str, new_mode: str) -> None:
        super().__init__()
        self.old_mode = old_mode
        self.new_mode = new_mode
