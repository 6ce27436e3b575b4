APP_NAME = "mixpkg"
