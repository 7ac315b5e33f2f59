"""Test helpers shared across modules."""

PASSWORD = "hunter22"


async def sign_up(client, email="apprentice@example.com", **fields):
    """Sign up (and so sign in) a user, returning their id."""
    profile = {
        "full_name": "Sam Fitter",
        "security_question": "Favourite colour?",
        "security_answer": "Blue",
        **fields,
    }
    result = await client.auth.sign_up(email, PASSWORD, profile)
    return result.user.id
