from flask_mail import Mail

# Email engine, bound to the app in create_app()
mail = Mail()
