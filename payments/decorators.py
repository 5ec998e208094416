from functools import wraps

from django.http import JsonResponse


def staff_required(view_func):
    """Only let authenticated staff users through; answer in JSON otherwise."""
    @wraps(view_func)
    def wrap(request, *args, **kwargs):
        user = request.user
        if not user.is_authenticated:
            return JsonResponse({"error": "Authentication required"}, status=401)
        if not user.is_staff:
            return JsonResponse({"error": "Admin access required"}, status=403)
        return view_func(request, *args, **kwargs)
    return wrap
