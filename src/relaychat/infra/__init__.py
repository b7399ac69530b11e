"""Infrastructure helpers without domain imports."""
