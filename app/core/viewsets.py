from rest_framework.permissions import AllowAny


class OpenSubmissionMixin:
    """Leaves the listed actions open to devices that carry no dashboard credentials.

    Authenticators are built before DRF sets ``self.action``, so the action is resolved from the
    request method here.
    """

    open_actions = ("create",)

    def _requested_action(self):
        return self.action_map.get(self.request.method.lower())

    def get_authenticators(self):
        if self._requested_action() in self.open_actions:
            return []
        return super().get_authenticators()

    def get_permissions(self):
        if self._requested_action() in self.open_actions:
            return [AllowAny()]
        return super().get_permissions()
